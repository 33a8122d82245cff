import unittest

from creditassist.core.exceptions import NotFoundError
from creditassist.db.init_db import create_tables
from creditassist.db.repository import MemoryRepository, MonotonicClock, SqlRepository
from creditassist.db.session import build_engine, build_session_factory
from creditassist.models.chat_message import SenderRole
from creditassist.models.document import DocumentStatus
from helpers import SUPPORT_EMAIL

JORDAN = "jordan@example.com"
ALEX = "alex@example.com"


class RepositoryContract:
    """Shared behaviour, run against each backend."""

    async def _seed_conversations(self):
        repo = self.repository
        await repo.create_message("Riley", SUPPORT_EMAIL, "Hi! I'm Riley.", SenderRole.AI, thread_email=JORDAN)
        await repo.create_message("Jordan", JORDAN, "My score dropped", SenderRole.VISITOR)
        await repo.create_message("Riley", SUPPORT_EMAIL, "Hi Alex! I'm Riley.", SenderRole.AI, thread_email=ALEX)
        await repo.create_message("Alex", ALEX, "Question about taxes", SenderRole.VISITOR)
        await repo.create_message("Riley", SUPPORT_EMAIL, "Legacy broadcast", SenderRole.AI)
        await repo.create_message("Riley", SUPPORT_EMAIL, "A specialist can help", SenderRole.AI,
                                  escalation_flag=True, thread_email=JORDAN)

    async def test_messages_are_ordered_by_creation(self):
        await self._seed_conversations()
        messages = await self.repository.list_messages()
        self.assertEqual(len(messages), 6)
        stamps = [m.created_at for m in messages]
        self.assertEqual(stamps, sorted(stamps))
        self.assertEqual(len(set(stamps)), len(stamps))

    async def test_conversation_scoping(self):
        await self._seed_conversations()
        bodies = [m.body for m in await self.repository.list_conversation(JORDAN)]
        self.assertEqual(bodies, ["Hi! I'm Riley.", "My score dropped", "Legacy broadcast", "A specialist can help"])
        last = (await self.repository.list_conversation(JORDAN))[-1]
        self.assertTrue(last.escalation_flag)

    async def test_document_lifecycle(self):
        repo = self.repository
        document = await repo.create_document(JORDAN, "Jordan", "report.pdf", "application/pdf", "blob1.pdf",
                                              visitor_time_zone="America/Chicago",
                                              visitor_local_date_label="10-18-2026")
        self.assertEqual(document.status, DocumentStatus.PENDING)
        self.assertIsNone(document.analysis_text)
        self.assertIsNone(document.report_pdf_path)

        await repo.update_document(document.id, analysis_text="# Current Status")
        updated = await repo.update_document(document.id, report_pdf_path="blob2.pdf", status=DocumentStatus.REVIEWED)
        self.assertEqual(updated.analysis_text, "# Current Status")
        self.assertEqual(updated.report_pdf_path, "blob2.pdf")

        fetched = await repo.get_document(document.id)
        self.assertEqual(fetched.status, DocumentStatus.REVIEWED)
        self.assertEqual(fetched.visitor_local_date_label, "10-18-2026")

        deleted = await repo.delete_document(document.id)
        self.assertEqual(deleted.id, document.id)
        self.assertIsNone(await repo.get_document(document.id))
        self.assertIsNone(await repo.delete_document(document.id))

    async def test_update_rejects_unknown_document_and_fields(self):
        with self.assertRaises(NotFoundError):
            await self.repository.update_document("missing", analysis_text="x")
        with self.assertRaises(ValueError):
            await self.repository.update_document("missing", visitor_email="x@example.com")

    async def test_list_documents_newest_first(self):
        repo = self.repository
        first = await repo.create_document(JORDAN, "Jordan", "a.png", "image/png", "a.png")
        second = await repo.create_document(JORDAN, "Jordan", "b.png", "image/png", "b.png")
        await repo.create_document(ALEX, "Alex", "c.png", "image/png", "c.png")

        self.assertEqual([d.id for d in await repo.list_documents(JORDAN)], [second.id, first.id])
        self.assertEqual(len(await repo.list_documents()), 3)

    async def test_clear_visitor(self):
        await self._seed_conversations()
        await self.repository.create_document(JORDAN, "Jordan", "a.png", "image/png", "a.png")
        await self.repository.create_document(ALEX, "Alex", "c.png", "image/png", "c.png")

        count, documents = await self.repository.clear_visitor(JORDAN)
        self.assertEqual(count, 3)
        self.assertEqual([d.file_name for d in documents], ["a.png"])

        remaining = [m.body for m in await self.repository.list_messages()]
        self.assertEqual(remaining, ["Hi Alex! I'm Riley.", "Question about taxes", "Legacy broadcast"])
        self.assertEqual(len(await self.repository.list_documents()), 1)


class TestMemoryRepository(RepositoryContract, unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.repository = MemoryRepository(SUPPORT_EMAIL)


class TestSqlRepository(RepositoryContract, unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.engine = build_engine("sqlite+aiosqlite:///:memory:")
        await create_tables(self.engine)
        self.repository = SqlRepository(build_session_factory(self.engine), SUPPORT_EMAIL, engine=self.engine)

    async def asyncTearDown(self):
        await self.engine.dispose()


class TestMonotonicClock(unittest.TestCase):

    def test_strictly_increasing(self):
        clock = MonotonicClock()
        stamps = [clock.now() for _ in range(500)]
        self.assertTrue(all(a < b for a, b in zip(stamps, stamps[1:])))


if __name__ == "__main__":
    unittest.main()
