import unittest

from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.runnables import RunnableLambda

from pdfchat import rag_pipeline
from pdfchat.models import Chunk, ConversationWindowView
from pdfchat.rag_pipeline import (
    LangChainAnswerGenerator,
    build_prompt_inputs,
    format_context,
    keyword_retrieval_hook,
    tokenize_for_matching,
)


def _chunk(index, text, page=1):
    return Chunk(index=index, text=text, page=page, start_char=0, end_char=len(text))


class TestPromptFormatting(unittest.TestCase):
    def test_context_labels_each_chunk_with_its_page(self):
        context = format_context([_chunk(0, " Alpha text. ", page=2), _chunk(1, "Beta text.", page=3)])
        self.assertEqual(context, "[p. 2] Alpha text.\n\n[p. 3] Beta text.")

    def test_history_is_empty_without_window(self):
        inputs = build_prompt_inputs(" Why? ", [_chunk(0, "alpha")], None)
        self.assertEqual(inputs["history"], "")
        self.assertEqual(inputs["question"], "Why?")

    def test_history_carries_previous_exchange(self):
        window = ConversationWindowView(previous_request_text="What is alpha?", previous_response_text="A letter.")
        inputs = build_prompt_inputs("And beta?", [_chunk(0, "alpha")], window)
        self.assertIn("PREVIOUS QUESTION:\nWhat is alpha?", inputs["history"])
        self.assertIn("PREVIOUS ANSWER:\nA letter.", inputs["history"])


class TestLangChainAnswerGenerator(unittest.TestCase):
    def test_generate_runs_chain_with_caller_credential(self):
        seen = []

        def _factory(credential):
            seen.append(credential)
            return FakeListChatModel(responses=["Alpha is on page 2 (p. 2)."])

        generator = LangChainAnswerGenerator(llm_factory=_factory)
        answer = generator.generate("What is alpha?", [_chunk(0, "Alpha text.", page=2)], None, "sk-test")
        self.assertEqual(answer, "Alpha is on page 2 (p. 2).")
        self.assertEqual(seen, ["sk-test"])

    def test_prompt_contains_context_history_and_question(self):
        captured = []

        def _echo_model(prompt_value):
            captured.extend(prompt_value.to_messages())
            return "ok"

        generator = LangChainAnswerGenerator(llm_factory=lambda credential: RunnableLambda(_echo_model))
        window = ConversationWindowView(previous_request_text="Earlier?", previous_response_text="Earlier answer.")
        generator.generate("Now?", [_chunk(0, "Chunk body.", page=4)], window, "sk-test")

        system, human = captured
        self.assertIn("Answer ONLY using the provided context", system.content)
        self.assertIn("[p. 4] Chunk body.", human.content)
        self.assertIn("PREVIOUS QUESTION:\nEarlier?", human.content)
        self.assertTrue(human.content.rstrip().endswith("QUESTION:\nNow?"))

    def test_llm_is_built_without_retries(self):
        llm = rag_pipeline._initialize_llm("sk-test")
        self.assertEqual(llm.max_retries, 0)
        self.assertEqual(llm.model_name, rag_pipeline.API_MODEL_NAME)
        self.assertEqual(llm.openai_api_key.get_secret_value(), "sk-test")


class TestKeywordRetrievalHook(unittest.TestCase):
    def test_tokenizer_casefolds_and_drops_short_tokens(self):
        self.assertEqual(tokenize_for_matching("The GPU & a TPU, x"), {"the", "gpu", "tpu"})

    def test_keeps_best_matches_in_reading_order(self):
        chunks = [
            _chunk(0, "Introduction to the book."),
            _chunk(1, "Vector databases store embeddings."),
            _chunk(2, "Cooking pasta."),
            _chunk(3, "Embeddings map text to vectors; databases index them."),
        ]
        hook = keyword_retrieval_hook(2)
        selected = hook("How do vector databases use embeddings?", chunks)
        self.assertEqual([c.index for c in selected], [1, 3])

    def test_ties_prefer_earlier_chunks(self):
        chunks = [_chunk(0, "alpha"), _chunk(1, "alpha"), _chunk(2, "alpha")]
        selected = keyword_retrieval_hook(1)("alpha?", chunks)
        self.assertEqual([c.index for c in selected], [0])

    def test_small_chunk_sets_pass_through(self):
        chunks = [_chunk(0, "alpha"), _chunk(1, "beta")]
        self.assertEqual(keyword_retrieval_hook(5)("gamma", chunks), chunks)


if __name__ == "__main__":
    unittest.main()
