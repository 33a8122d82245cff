"""
End-to-end flows through the HTTP API, using the ephemeral backend and a
patched model client.
"""

import base64
import io
import tempfile
import unittest
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient
from PIL import Image

from creditassist.core.config import settings
from creditassist.main import app
from creditassist.services.ai_service import GroqService

API = settings.API_V1_STR
VISITOR = "jordan@example.com"
ADMIN_PASSWORD = "correct-horse-battery"

MODEL_ANALYSIS = """# Current Status
Credit Score: 598 (Fair)
Overall Risk Level: high
Key Concern: three late payments reported in 2025
# Immediate Action Plan
1. Request debt validation for the Midland account"""


def jpeg_b64() -> str:
    buffer = io.BytesIO()
    Image.new("RGB", (64, 64), color=(30, 60, 90)).save(buffer, format="JPEG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


class ApiTestCase(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        overrides = {
            "STORAGE_BACKEND": "ephemeral",
            "UPLOAD_DIR": f"{self.tmp.name}/uploads",
            "REPORTS_DIR": f"{self.tmp.name}/reports",
            "ADMIN_PASSWORD": ADMIN_PASSWORD,
        }
        for name, value in overrides.items():
            patcher = patch.object(settings, name, value)
            patcher.start()
            self.addCleanup(patcher.stop)

        self.analyze = AsyncMock(return_value=MODEL_ANALYSIS)
        self.chat_reply = AsyncMock(return_value="Happy to help. [ESCALATE:NO]")
        for name, mock in (("analyze_document", self.analyze), ("chat_reply", self.chat_reply)):
            patcher = patch.object(GroqService, name, mock)
            patcher.start()
            self.addCleanup(patcher.stop)

        self.client = TestClient(app)
        self.client.__enter__()
        self.addCleanup(self.client.__exit__, None, None, None)

    def upload(self, file_type="image/jpeg", file_content=None, file_name="credit_report.jpg"):
        return self.client.post(f"{API}/public/documents", json={
            "visitor_email": VISITOR,
            "visitor_name": "Jordan Smith",
            "file_name": file_name,
            "file_type": file_type,
            "file_content": file_content if file_content is not None else jpeg_b64(),
            "visitor_time_zone": "America/New_York",
            "visitor_local_date_label": "10-18-2026",
        })

    def session_messages(self):
        resp = self.client.get(f"{API}/public/chat", params={"email": VISITOR})
        self.assertEqual(resp.status_code, 200)
        return resp.json()

    def admin_headers(self):
        resp = self.client.post(f"{API}/admin/auth/login", data={
            "username": settings.ADMIN_EMAIL, "password": ADMIN_PASSWORD
        })
        self.assertEqual(resp.status_code, 200)
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}


class TestVisitorScenarios(ApiTestCase):

    def test_health(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.json()["status"], "ok")

    def test_jpeg_upload_returns_processed_document(self):
        resp = self.upload()
        self.assertEqual(resp.status_code, 201)
        document = resp.json()
        self.assertIsNotNone(document["analysis_text"])
        self.assertIsNotNone(document["report_pdf_path"])
        self.assertEqual(document["status"], "pending")
        self.assertEqual(self.analyze.await_count, 1)

        announcement = self.session_messages()[-1]
        self.assertEqual(announcement["sender_role"], "ai")
        self.assertIn("credit_report.jpg", announcement["body"])

        report = self.client.get(f"{API}/public/documents/{document['id']}/report")
        self.assertEqual(report.status_code, 200)
        self.assertEqual(report.headers["content-type"], "application/pdf")
        self.assertIn("TN-Credit-Analysis-10-18-2026.pdf", report.headers["content-disposition"])

        saved = self.client.get(f"{API}/public/documents/{document['id']}/report/saved")
        self.assertEqual(saved.status_code, 200)
        self.assertTrue(saved.content.startswith(b"%PDF"))

    def test_widget_config_serves_reveal_delay(self):
        resp = self.client.get(f"{API}/public/chat/config")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {
            "escalation_reveal_delay_seconds": settings.ESCALATION_REVEAL_DELAY_SECONDS
        })

        with patch.object(app.state.services, "escalation_delay", 1.5):
            resp = self.client.get(f"{API}/public/chat/config")
        self.assertEqual(resp.json()["escalation_reveal_delay_seconds"], 1.5)

    def test_malformed_date_label_rejected(self):
        resp = self.client.post(f"{API}/public/documents", json={
            "visitor_email": VISITOR,
            "visitor_name": "Jordan Smith",
            "file_name": "credit_report.jpg",
            "file_type": "image/jpeg",
            "file_content": jpeg_b64(),
            "visitor_local_date_label": '10-18-2026"; x="y',
        })
        self.assertEqual(resp.status_code, 400)
        self.assertIn("MM-DD-YYYY", resp.json()["detail"])
        self.analyze.assert_not_awaited()

    def test_plain_text_upload_rejected_before_any_document(self):
        resp = self.upload(file_type="text/plain", file_name="notes.txt",
                           file_content=base64.b64encode(b"hello").decode("ascii"))
        self.assertEqual(resp.status_code, 400)
        self.assertIn("Unsupported file type", resp.json()["detail"])

        listed = self.client.get(f"{API}/public/documents", params={"email": VISITOR})
        self.assertEqual(listed.json(), [])
        self.analyze.assert_not_awaited()

    def test_urgent_message_escalates_regardless_of_marker(self):
        self.chat_reply.return_value = "We can absolutely help you respond. [ESCALATE:NO]"
        self.client.post(f"{API}/public/chat/session", json={"visitor_email": VISITOR})

        resp = self.client.post(f"{API}/public/chat", json={
            "sender_name": "Jordan",
            "sender_email": VISITOR,
            "body": "I got a summons from a collection agency",
        })
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["sender_role"], "visitor")

        ai_reply = self.session_messages()[-1]
        self.assertEqual(ai_reply["sender_role"], "ai")
        self.assertTrue(ai_reply["escalation_flag"])
        self.assertEqual(ai_reply["body"], "We can absolutely help you respond.")

    def test_session_scoping_and_escalation_confirmation(self):
        self.client.post(f"{API}/public/chat/session", json={"visitor_email": VISITOR})
        self.client.post(f"{API}/public/chat", json={
            "sender_name": "Jordan", "sender_email": VISITOR, "body": "old question"
        })
        self.client.post(f"{API}/public/chat/session", json={"visitor_email": VISITOR})

        messages = self.session_messages()
        self.assertEqual(len(messages), 1)
        self.assertIn("I'm Riley", messages[0]["body"])

        resp = self.client.post(f"{API}/public/chat/escalate", json={"visitor_email": VISITOR})
        self.assertEqual(resp.status_code, 201)
        self.assertTrue(resp.json()["escalation_flag"])

    def test_clear_conversation(self):
        self.upload()
        self.client.post(f"{API}/public/chat/session", json={"visitor_email": VISITOR})

        resp = self.client.delete(f"{API}/public/chat", params={"email": VISITOR})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["documents_deleted"], 1)
        self.assertEqual(self.session_messages(), [])

    def test_unknown_report_is_404(self):
        resp = self.client.get(f"{API}/public/documents/does-not-exist/report")
        self.assertEqual(resp.status_code, 404)


class TestAdminScenarios(ApiTestCase):

    def test_requires_token(self):
        self.assertEqual(self.client.get(f"{API}/admin/documents").status_code, 401)
        bad = self.client.get(f"{API}/admin/documents", headers={"Authorization": "Bearer nope"})
        self.assertEqual(bad.status_code, 403)

    def test_wrong_password(self):
        resp = self.client.post(f"{API}/admin/auth/login", data={
            "username": settings.ADMIN_EMAIL, "password": "wrong"
        })
        self.assertEqual(resp.status_code, 400)

    def test_document_review_flow(self):
        document = self.upload().json()
        headers = self.admin_headers()

        listed = self.client.get(f"{API}/admin/documents", headers=headers).json()
        self.assertEqual([d["id"] for d in listed], [document["id"]])

        view = self.client.get(f"{API}/admin/documents/{document['id']}/view", headers=headers)
        self.assertEqual(view.status_code, 200)
        self.assertTrue(view.headers["content-disposition"].startswith("inline"))
        self.assertTrue(view.content.startswith(b"\xff\xd8"))

        download = self.client.get(f"{API}/admin/documents/{document['id']}/download", headers=headers)
        self.assertTrue(download.headers["content-disposition"].startswith("attachment"))

        patched = self.client.patch(f"{API}/admin/documents/{document['id']}", headers=headers,
                                    json={"status": "reviewed", "admin_review": "Call back Monday"})
        self.assertEqual(patched.status_code, 200)
        self.assertEqual(patched.json()["status"], "reviewed")
        self.assertEqual(patched.json()["admin_review"], "Call back Monday")

        deleted = self.client.delete(f"{API}/admin/documents/{document['id']}", headers=headers)
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(self.client.get(f"{API}/admin/documents", headers=headers).json(), [])

    def test_non_latin_file_name_served(self):
        document = self.upload(file_name="отчет.jpg").json()
        headers = self.admin_headers()

        view = self.client.get(f"{API}/admin/documents/{document['id']}/view", headers=headers)
        self.assertEqual(view.status_code, 200)
        self.assertEqual(view.headers["content-disposition"],
                         "inline; filename*=utf-8''%D0%BE%D1%82%D1%87%D0%B5%D1%82.jpg")
        self.assertTrue(view.content.startswith(b"\xff\xd8"))

        download = self.client.get(f"{API}/admin/documents/{document['id']}/download", headers=headers)
        self.assertEqual(download.status_code, 200)
        self.assertTrue(download.headers["content-disposition"].startswith("attachment; filename*=utf-8''"))

    def test_admin_chat(self):
        headers = self.admin_headers()
        self.client.post(f"{API}/public/chat", json={
            "sender_name": "Jordan", "sender_email": VISITOR, "body": "hello there"
        })
        resp = self.client.post(f"{API}/admin/chat", headers=headers,
                                json={"visitor_email": VISITOR, "body": "Hi Jordan, Sam here."})
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["sender_role"], "admin")

        everything = self.client.get(f"{API}/admin/chat", headers=headers).json()
        self.assertEqual([m["sender_role"] for m in everything], ["visitor", "ai", "admin"])


if __name__ == "__main__":
    unittest.main()
