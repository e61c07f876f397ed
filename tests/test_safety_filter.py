"""Tests for the content safety filter."""

import pytest

from predictionengine.models.responses import ContentFilterResults, ProviderResponse
from predictionengine.services import safety_filter


def response_with(filters):
    entry = {"b64_json": "aW1hZ2U="}
    if filters is not None:
        entry["content_filter_results"] = filters
    return ProviderResponse.model_validate({"data": [entry]})


def test_filtered_severity_category_is_rejected():
    verdict = safety_filter.evaluate(response_with({"violence": {"filtered": True, "severity": "medium"}}))

    assert verdict.filtered is True
    assert verdict.reason == "Content filtered due to violence (severity: medium)"


@pytest.mark.parametrize("category", ["sexual", "violence", "hate", "self_harm"])
def test_each_severity_category_is_checked(category):
    verdict = safety_filter.evaluate(response_with({category: {"filtered": True, "severity": "high"}}))

    assert verdict.filtered is True
    assert category in verdict.reason


def test_unfiltered_categories_pass():
    filters = {
        "sexual": {"filtered": False, "severity": "safe"},
        "violence": {"filtered": False, "severity": "low"},
        "hate": {"filtered": False, "severity": "safe"},
        "self_harm": {"filtered": False, "severity": "safe"},
        "profanity": {"detected": False, "filtered": False},
        "jailbreak": {"detected": False, "filtered": False},
    }

    assert safety_filter.evaluate(response_with(filters)).filtered is False


def test_profanity_and_jailbreak_detection():
    verdict = safety_filter.evaluate(response_with({
        "profanity": {"detected": True, "filtered": False},
        "jailbreak": {"detected": True, "filtered": False},
    }))

    assert verdict.filtered is True
    assert verdict.reason == "Content filtered due to profanity and jailbreak attempt"


def test_jailbreak_alone():
    verdict = safety_filter.evaluate(response_with({"jailbreak": {"detected": True}}))

    assert verdict.reason == "Content filtered due to jailbreak attempt"


def test_severity_category_reported_before_detectors():
    verdict = safety_filter.evaluate(response_with({
        "hate": {"filtered": True, "severity": "high"},
        "profanity": {"detected": True},
    }))

    assert verdict.reason == "Content filtered due to hate (severity: high)"


def test_missing_metadata_is_accepted():
    """No safety metadata is treated as no signal."""
    assert safety_filter.evaluate(response_with(None)).filtered is False
    assert safety_filter.evaluate(ProviderResponse(data=[])).filtered is False
    assert safety_filter.evaluate_metadata(None).filtered is False


def test_unknown_categories_are_ignored():
    metadata = ContentFilterResults.model_validate({"custom_blocklists": {"filtered": True}})

    assert safety_filter.evaluate_metadata(metadata).filtered is False
