import httpx
import asyncio
import base64
import mimetypes
import sys
from pathlib import Path
from typing import Dict, List

from creditassist.models.chat_message import SenderRole
from creditassist.schemas.chat import ChatMessageResponse, WidgetConfig
from creditassist.services.escalation import EscalationState, EscalationWatcher

BASE_URL = "http://127.0.0.1:8000/api/v1/public"
POLL_SECONDS = 2.0

HELP_TEXT = (
    "Commands: /upload <file>  /report <document-id>  /summary  "
    "/specialist  /dismiss  /exit"
)

ROLE_LABELS = {
    SenderRole.VISITOR: "\033[1;34mYOU\033[0m",
    SenderRole.AI: "\033[1;32mRILEY\033[0m",
    SenderRole.ADMIN: "\033[1;35mSPECIALIST\033[0m",
}


class ChatWidget:
    """
    Terminal rendition of the website chat widget: polls the message list,
    prints new messages and surfaces the specialist offer.
    """

    def __init__(self, client: httpx.AsyncClient, name: str, email: str):
        self.client = client
        self.name = name
        self.email = email
        self.seen: Dict[str, ChatMessageResponse] = {}
        self.documents: List[dict] = []
        self.watcher = EscalationWatcher(on_change=self.on_escalation_change)

    def on_escalation_change(self, state: EscalationState):
        if state == EscalationState.REVEALED:
            print("\n\033[1;33m>> Want to talk to a credit specialist? "
                  "Type /specialist to connect or /dismiss to close.\033[0m")

    def show(self, message: ChatMessageResponse):
        print(f"[{ROLE_LABELS[message.sender_role]}]: {message.body}\n")

    async def refresh(self):
        resp = await self.client.get(BASE_URL + "/chat", params={"email": self.email})
        resp.raise_for_status()
        messages = [ChatMessageResponse(**m) for m in resp.json()]
        for message in messages:
            if message.id not in self.seen:
                self.seen[message.id] = message
                if message.sender_role != SenderRole.VISITOR:
                    self.show(message)
        self.watcher.update(messages, self.email)

    async def poll(self):
        while True:
            try:
                await self.refresh()
            except httpx.HTTPError as e:
                print(f"[\033[1;31mERROR\033[0m]: {e}")
            await asyncio.sleep(POLL_SECONDS)

    async def start(self):
        resp = await self.client.get(BASE_URL + "/chat/config")
        resp.raise_for_status()
        self.watcher.delay = WidgetConfig(**resp.json()).escalation_reveal_delay_seconds

        resp = await self.client.post(BASE_URL + "/chat/session", json={
            "visitor_email": self.email, "visitor_name": self.name
        })
        resp.raise_for_status()
        await self.refresh()

    async def send(self, text: str):
        if not self.watcher.can_send_text:
            print("A specialist has been requested. Use /report or /summary while you wait.")
            return
        resp = await self.client.post(BASE_URL + "/chat", json={
            "sender_name": self.name, "sender_email": self.email, "body": text
        })
        if resp.status_code != 201:
            print(f"[\033[1;31mERROR\033[0m]: {resp.status_code} - {resp.text}")
            return
        self.seen[resp.json()["id"]] = ChatMessageResponse(**resp.json())

    async def upload(self, path_arg: str):
        path = Path(path_arg).expanduser()
        if not path.is_file():
            print(f"No such file: {path}")
            return
        file_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        print("Analyzing your document...", end="\r")
        resp = await self.client.post(BASE_URL + "/documents", json={
            "visitor_email": self.email,
            "visitor_name": self.name,
            "file_name": path.name,
            "file_type": file_type,
            "file_content": base64.b64encode(path.read_bytes()).decode("ascii"),
        })
        if resp.status_code != 201:
            print(f"[\033[1;31mERROR\033[0m]: {resp.status_code} - {resp.json().get('detail')}")
            return
        document = resp.json()
        self.documents.append(document)
        print(f"Document {document['id']} analyzed. Use /report {document['id']} to save the PDF.")

    async def download_report(self, document_id: str):
        resp = await self.client.get(f"{BASE_URL}/documents/{document_id}/report")
        if resp.status_code != 200:
            print(f"[\033[1;31mERROR\033[0m]: {resp.status_code} - {resp.text}")
            return
        disposition = resp.headers.get("content-disposition", "")
        filename = disposition.split("filename=")[-1].strip('"') or f"{document_id}.pdf"
        Path(filename).write_bytes(resp.content)
        print(f"Saved {filename}")

    def summary(self):
        if not self.documents:
            print("No documents uploaded in this session.")
            return
        print(self.documents[-1].get("analysis_text") or "Analysis pending.")

    async def confirm_specialist(self):
        resp = await self.client.post(BASE_URL + "/chat/escalate", json={"visitor_email": self.email})
        resp.raise_for_status()
        self.watcher.confirm()
        await self.refresh()

    async def handle(self, line: str) -> bool:
        """Returns False when the session should end."""
        command, _, arg = line.partition(" ")
        if command in ("/exit", "/quit", "exit", "quit"):
            return False
        if command == "/upload":
            await self.upload(arg.strip())
        elif command == "/report":
            await self.download_report(arg.strip())
        elif command == "/summary":
            self.summary()
        elif command == "/specialist":
            await self.confirm_specialist()
        elif command == "/dismiss":
            self.watcher.dismiss()
        elif command == "/help":
            print(HELP_TEXT)
        else:
            await self.send(line)
        return True


async def chat():
    print("      \033[1;36m*** TN CREDIT SOLUTIONS - SUPPORT CHAT ***\033[0m")
    print(f"      \033[0;33m{HELP_TEXT}\033[0m\n")

    name = input("Your name: ").strip() or "Visitor"
    email = input("Your email: ").strip()

    async with httpx.AsyncClient(timeout=120.0) as client:
        widget = ChatWidget(client, name, email)
        try:
            await widget.start()
        except httpx.HTTPError as e:
            print(f"Connection Error: {e}")
            return

        poller = asyncio.create_task(widget.poll())
        try:
            while True:
                line = await asyncio.to_thread(input, "")
                if not line.strip():
                    continue
                if not await widget.handle(line.strip()):
                    print("Exiting session.")
                    break
        except (KeyboardInterrupt, EOFError):
            print("\nSession ended by user.")
        finally:
            poller.cancel()
            widget.watcher.close()


if __name__ == "__main__":
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(chat())
