import unittest

from pdfchat.memory_manager import INITIAL_GREETING, LOADED_GREETING, ConversationMemory
from pdfchat.models import Message


class TestConversationMemory(unittest.TestCase):
    def setUp(self):
        self.memory = ConversationMemory()

    def test_starts_with_greeting_and_empty_window(self):
        self.assertEqual(self.memory.messages(), (Message(text=INITIAL_GREETING, type="response"),))
        self.assertIsNone(self.memory.window())

    def test_window_tracks_only_latest_exchange(self):
        self.memory.record_exchange("What is chapter 1 about?", "Tokenizers.")
        window = self.memory.window()
        self.assertEqual(window.previous_request_text, "What is chapter 1 about?")
        self.assertEqual(window.previous_response_text, "Tokenizers.")

        self.memory.record_exchange("And chapter 2?", "Embeddings.")
        window = self.memory.window()
        self.assertEqual(window.previous_request_text, "And chapter 2?")
        self.assertEqual(window.previous_response_text, "Embeddings.")

    def test_log_keeps_every_exchange_in_order(self):
        self.memory.record_exchange("q1", "a1")
        self.memory.record_exchange("q2", "a2")
        messages = self.memory.messages()
        self.assertEqual(len(messages), 5)
        self.assertEqual([m.type for m in messages], ["response", "request", "response", "request", "response"])
        self.assertEqual([m.text for m in messages[1:]], ["q1", "a1", "q2", "a2"])

    def test_messages_returns_a_snapshot(self):
        before = self.memory.messages()
        self.memory.record_exchange("q1", "a1")
        self.assertEqual(len(before), 1)
        self.assertEqual(len(self.memory.messages()), 3)

    def test_reset_restarts_log_and_drops_window(self):
        self.memory.record_exchange("q1", "a1")
        self.memory.reset()
        self.assertEqual(self.memory.messages(), (Message(text=LOADED_GREETING, type="response"),))
        self.assertIsNone(self.memory.window())

    def test_window_needs_a_completed_exchange(self):
        self.memory.append(Message(text="q1", type="request"))
        self.assertIsNone(self.memory.window())
        self.memory.append(Message(text="a1", type="response"))
        self.assertEqual(self.memory.window().previous_request_text, "q1")


if __name__ == "__main__":
    unittest.main()
