import unittest

from pdfchat.document_manager import DocumentSession
from pdfchat.errors import EmptyQuestion, GenerationFailed, MissingCredential, NoDocumentLoaded, StaleAnswer
from pdfchat.memory_manager import ConversationMemory
from pdfchat.models import Chunk, DocumentSnapshot, SplitResult
from pdfchat.query_processor import QueryOrchestrator


class _RecordingGenerator:
    def __init__(self, answers=None, error=None):
        self.answers = list(answers or ["An answer."])
        self.error = error
        self.calls = []

    def generate(self, question, chunks, window, credential):
        self.calls.append({"question": question, "chunks": list(chunks), "window": window, "credential": credential})
        if self.error is not None:
            raise self.error
        return self.answers.pop(0)


def _snapshot(*texts) -> DocumentSnapshot:
    chunks = tuple(
        Chunk(index=i, text=text, page=i + 1, start_char=0, end_char=len(text)) for i, text in enumerate(texts)
    )
    return DocumentSnapshot(filename="book.pdf", chunks=chunks)


class TestQueryOrchestrator(unittest.TestCase):
    def setUp(self):
        self.memory = ConversationMemory()
        self.generator = _RecordingGenerator(answers=["First answer.", "Second answer."])
        self.orchestrator = QueryOrchestrator(memory=self.memory, generator=self.generator)

    def _ask(self, question, snapshot=None, credential="sk-test"):
        snapshot = snapshot if snapshot is not None else _snapshot("alpha", "beta")
        return self.orchestrator.ask(question, snapshot, self.memory.window(), credential)

    def test_missing_document_is_checked_first(self):
        with self.assertRaises(NoDocumentLoaded):
            self.orchestrator.ask("", DocumentSnapshot(), None, "")
        self.assertEqual(self.generator.calls, [])

    def test_missing_credential_is_checked_before_question(self):
        with self.assertRaises(MissingCredential):
            self._ask("", credential="   ")
        self.assertEqual(self.generator.calls, [])

    def test_blank_question_is_rejected(self):
        with self.assertRaises(EmptyQuestion):
            self._ask("  \n ")
        self.assertEqual(self.generator.calls, [])

    def test_answer_is_recorded_and_forwarded_as_next_window(self):
        answer = self._ask("  What is alpha?  ")
        self.assertEqual(answer.text, "First answer.")
        self.assertEqual(answer.type, "response")

        first_call = self.generator.calls[0]
        self.assertEqual(first_call["question"], "What is alpha?")
        self.assertIsNone(first_call["window"])
        self.assertEqual(first_call["credential"], "sk-test")
        self.assertEqual([c.text for c in first_call["chunks"]], ["alpha", "beta"])

        self._ask("And beta?")
        second_window = self.generator.calls[1]["window"]
        self.assertEqual(second_window.previous_request_text, "What is alpha?")
        self.assertEqual(second_window.previous_response_text, "First answer.")
        self.assertEqual([m.text for m in self.memory.messages()][-2:], ["And beta?", "Second answer."])

    def test_generation_failure_leaves_memory_untouched(self):
        orchestrator = QueryOrchestrator(
            memory=self.memory, generator=_RecordingGenerator(error=RuntimeError("401 invalid api key"))
        )
        with self.assertRaises(GenerationFailed) as ctx:
            orchestrator.ask("What is alpha?", _snapshot("alpha"), None, "sk-bad")
        self.assertIn("401 invalid api key", ctx.exception.message)
        self.assertEqual(len(self.memory.messages()), 1)
        self.assertIsNone(self.memory.window())

    def test_reasoning_blocks_are_stripped(self):
        orchestrator = QueryOrchestrator(
            memory=self.memory, generator=_RecordingGenerator(answers=["<think>scratch\nwork</think>\nAlpha is first."])
        )
        answer = orchestrator.ask("What is alpha?", _snapshot("alpha"), None, "sk-test")
        self.assertEqual(answer.text, "Alpha is first.")

    def test_empty_answer_is_a_generation_failure(self):
        orchestrator = QueryOrchestrator(memory=self.memory, generator=_RecordingGenerator(answers=["   "]))
        with self.assertRaises(GenerationFailed):
            orchestrator.ask("What is alpha?", _snapshot("alpha"), None, "sk-test")
        self.assertEqual(len(self.memory.messages()), 1)

    def test_answer_for_replaced_snapshot_is_stale(self):
        documents = DocumentSession(self.memory)
        documents.commit("old.pdf", SplitResult(type="success", docs=list(_snapshot("alpha").chunks)))
        stale_snapshot = documents.snapshot()
        documents.commit("new.pdf", SplitResult(type="success", docs=list(_snapshot("beta").chunks)))

        orchestrator = QueryOrchestrator(memory=self.memory, documents=documents, generator=self.generator)
        with self.assertRaises(StaleAnswer):
            orchestrator.ask("What is alpha?", stale_snapshot, None, "sk-test")
        self.assertEqual(len(self.memory.messages()), 1)
        self.assertIsNone(self.memory.window())

        answer = orchestrator.ask("What is beta?", documents.snapshot(), None, "sk-test")
        self.assertEqual(answer.text, "Second answer.")
        self.assertEqual(self.memory.window().previous_request_text, "What is beta?")

    def test_retrieval_hook_narrows_chunks(self):
        orchestrator = QueryOrchestrator(
            memory=self.memory,
            generator=self.generator,
            retrieval_hook=lambda question, chunks: [c for c in chunks if c.text == "beta"],
        )
        orchestrator.ask("What is beta?", _snapshot("alpha", "beta"), None, "sk-test")
        self.assertEqual([c.text for c in self.generator.calls[0]["chunks"]], ["beta"])


if __name__ == "__main__":
    unittest.main()
