"""Tests for LLM and algorithmic classification."""

import pytest

from superscraper.classifier import (
    AIClassifier,
    classification_from_entry,
    classify_records,
    classify_records_algorithmically,
)
from superscraper.errors import MissingCredentialsError
from superscraper.models import RawProductRecord, RecordStatus
from superscraper.pipeline import RunState
from superscraper.retry import RetryPolicy

FAST_POLICY = RetryPolicy(max_attempts=2, base_delay=0.0, rotate_delay=0.0)


def make_records(*names):
    return [RawProductRecord(raw_name=name, price=100000, source_index=1) for name in names]


@pytest.fixture
def classifier(rotator, no_sleep):
    return AIClassifier(rotator, batch_size=2, batch_delay=0.5, policy=FAST_POLICY, sleep=no_sleep)


class TestClassificationFromEntry:
    """Test filling gaps in one response entry."""

    def test_full_entry(self):
        result = classification_from_entry(
            "raw",
            {
                "canonicalName": "Dầu xả bưởi 310ml",
                "bundleLabel": "Lẻ",
                "categoryTop": "Chăm sóc tóc",
                "categorySub": "Dầu xả",
            },
        )
        assert result.canonical_name == "Dầu xả bưởi 310ml"
        assert result.category_sub == "Dầu xả"

    def test_legacy_keys(self):
        result = classification_from_entry(
            "raw", {"normalizedName": "X", "plCombo": "Combo 2", "phanLoaiTong": "Combo"}
        )
        assert (result.canonical_name, result.bundle_label, result.category_top) == ("X", "Combo 2", "Combo")

    def test_defaults(self):
        result = classification_from_entry("COMBO dầu xả", {})
        assert result.canonical_name == "COMBO dầu xả"
        assert result.bundle_label == "Combo"
        assert result.category_top == "Khác"
        assert result.category_sub == "Khác"
        assert classification_from_entry("Dầu xả", {}).bundle_label == "Lẻ"


class TestAlgorithmic:
    def test_classifies_and_tracks_progress(self):
        records = make_records("Dầu xả bưởi 310ml", "Combo 2 Dầu xả bưởi 310ml", "Quạt mini")
        state = RunState()
        classify_records_algorithmically(records, state=state, chunk_size=2)

        assert all(r.status == RecordStatus.SUCCESS for r in records)
        assert records[1].canonical_name == "Combo 2 Dầu xả bưởi 310ml"
        assert records[2].category_top == "Khác"
        assert state.progress == 100

    def test_stop_leaves_records_pending(self):
        records = make_records("Dầu xả bưởi 310ml", "Dầu xả bưởi 50ml")
        state = RunState()
        state.request_stop()
        classify_records_algorithmically(records, state=state)
        assert all(r.status == RecordStatus.PENDING for r in records)
        assert state.logs[-1].kind == "warning"


class TestAIClassifier:
    """Test batched LLM classification with fallbacks."""

    def test_prompt_lists_catalog_and_names(self, classifier):
        prompt = classifier.build_prompt(["Dầu xả  bưởi"])
        assert "Dầu gội bưởi không sulfate 310ml" in prompt
        assert '["Dầu xả  bưởi"]' in prompt

    def test_batches_and_delays(self, classifier, mock_openai_client, respond, no_sleep):
        records = make_records("a1", "a2", "a3")
        mock_openai_client.responses.create.side_effect = [
            respond({"a1": {"canonicalName": "A"}, "a2": {"canonicalName": "A", "bundleLabel": "Combo 2"}}),
            respond({"a3": {"canonicalName": "B", "categoryTop": "Làm sạch"}}),
        ]
        state = RunState()

        classifier.classify_records(records, state)

        assert [r.canonical_name for r in records] == ["A", "A", "B"]
        assert records[1].bundle_label == "Combo 2"
        assert records[2].category_top == "Làm sạch"
        assert mock_openai_client.responses.create.call_count == 2
        # one pause between the two batches, none after the last
        assert no_sleep.calls == [0.5]
        assert state.progress == 100

    def test_duplicate_names_sent_once(self, classifier, mock_openai_client, respond):
        records = make_records("same", "same")
        mock_openai_client.responses.create.return_value = respond({"same": {"canonicalName": "S"}})
        classifier.classify_records(records)
        prompt = mock_openai_client.responses.create.call_args.kwargs["input"][0]["content"][0]["text"]
        assert prompt.count('"same"') == 1
        assert [r.canonical_name for r in records] == ["S", "S"]

    def test_names_missing_from_answer_use_matcher(self, classifier, mock_openai_client, respond):
        records = make_records("Dầu xả bưởi 310ml", "other")
        mock_openai_client.responses.create.return_value = respond({"other": {"canonicalName": "O"}})
        classifier.classify_records(records)
        assert records[0].canonical_name == "Dầu xả bưởi 310ml"
        assert records[0].category_sub == "Dầu xả"
        assert records[1].canonical_name == "O"

    def test_failed_batch_falls_back_to_matcher(self, classifier, mock_openai_client, respond):
        records = make_records("Combo 2 Dầu xả bưởi 310ml")
        mock_openai_client.responses.create.return_value = respond(["not", "an", "object"])
        classifier.classify_records(records)
        assert records[0].status == RecordStatus.SUCCESS
        assert records[0].bundle_label == "Combo 2"
        assert mock_openai_client.responses.create.call_count == FAST_POLICY.max_attempts

    def test_missing_credentials_finishes_algorithmically(
        self, rotator_factory, no_sleep, mock_openai_client, status_error
    ):
        """Without keys every record is still classified, then the error surfaces."""
        rotator = rotator_factory(keys=["sk-test-aaaaaaaaaaaa"])
        classifier = AIClassifier(rotator, batch_size=1, policy=FAST_POLICY, sleep=no_sleep)
        records = make_records("Dầu xả bưởi 310ml", "Dầu xả bưởi 50ml")
        mock_openai_client.responses.create.side_effect = status_error("quota", 429)
        state = RunState()

        with pytest.raises(MissingCredentialsError):
            classifier.classify_records(records, state)

        assert [r.canonical_name for r in records] == ["Dầu xả bưởi 310ml", "Dầu xả bưởi 50ml"]
        assert all(r.status == RecordStatus.SUCCESS for r in records)
        assert state.progress == 100

    def test_quota_errors_on_large_pool_only_fail_one_batch(
        self, rotator_factory, no_sleep, mock_openai_client, respond, status_error
    ):
        """A batch that runs out of attempts with keys left does not end the run."""
        rotator = rotator_factory(keys=[f"sk-test-{c * 12}" for c in "abcde"])
        classifier = AIClassifier(rotator, batch_size=1, policy=FAST_POLICY, sleep=no_sleep)
        records = make_records("Dầu xả bưởi 310ml", "second")
        quota = status_error("quota", 429)
        mock_openai_client.responses.create.side_effect = [
            quota,
            quota,
            respond({"second": {"canonicalName": "From model"}}),
        ]

        classifier.classify_records(records)

        assert records[0].canonical_name == "Dầu xả bưởi 310ml"
        assert records[0].category_sub == "Dầu xả"
        assert records[1].canonical_name == "From model"
        assert mock_openai_client.responses.create.call_count == 3


class TestDispatch:
    def test_code_path(self):
        records = make_records("Dầu xả bưởi 310ml")
        classify_records(records, "code")
        assert records[0].status == RecordStatus.SUCCESS

    def test_ai_needs_classifier(self):
        with pytest.raises(ValueError):
            classify_records(make_records("x"), "ai")

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            classify_records(make_records("x"), "magic")
