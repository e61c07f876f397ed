"""Content-safety gate over provider filter metadata."""

from predictionengine.models.responses import ContentFilterResults, ProviderResponse, SafetyVerdict

# Checked in this order; the first filtered category names the reason
SEVERITY_CATEGORIES = ("sexual", "violence", "hate", "self_harm")


def evaluate_metadata(metadata: ContentFilterResults | None) -> SafetyVerdict:
    """Verdict for one entry's safety metadata. No metadata means no signal, so accept."""
    if metadata is None:
        return SafetyVerdict(filtered=False)

    for category in SEVERITY_CATEGORIES:
        result = getattr(metadata, category)
        if result is not None and result.filtered:
            return SafetyVerdict(
                filtered=True,
                reason=f"Content filtered due to {category} (severity: {result.severity})",
            )

    reasons = []
    if metadata.profanity is not None and metadata.profanity.detected:
        reasons.append("profanity")
    if metadata.jailbreak is not None and metadata.jailbreak.detected:
        reasons.append("jailbreak attempt")
    if reasons:
        return SafetyVerdict(filtered=True, reason=f"Content filtered due to {' and '.join(reasons)}")

    return SafetyVerdict(filtered=False)


def evaluate(response: ProviderResponse) -> SafetyVerdict:
    """Evaluate the first entry of a provider response."""
    entry = response.first_entry
    return evaluate_metadata(entry.safety_metadata if entry is not None else None)
