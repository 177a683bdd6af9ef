from reviewguard.worker.agents.antifraud.patterns import (
    CONTENT_FAMILIES, COPY_PASTE, FAKE_POSITIVE, LOW_QUALITY, SENTIMENT_MISMATCH, SPAM, SUSPICIOUS,
    evaluate_families, sentiment_counts, sentiment_mismatch,
)

CLEAN = "Replies quickly and the photos match the description, would subscribe again soon."


def _flags(title, content, rating):
    return [flag for _, flag in evaluate_families(CONTENT_FAMILIES, title, content, rating)]


def test_clean_review_fires_nothing():
    assert evaluate_families(CONTENT_FAMILIES, "Solid creator", CLEAN, 4) == []


def test_spam_family_scores_once_even_with_several_hits():
    content = "Visit https://a.example and https://b.example!!!!! SUPERDEALNOW"
    hits = evaluate_families((SPAM,), "title", content, 3)
    assert hits == [(25, "spam_pattern")]


def test_spam_checks_title_too():
    assert SPAM.test("asdf", CLEAN, 4) is True


def test_low_quality_single_stock_word():
    assert LOW_QUALITY.test("", "ok", 3) is True
    assert LOW_QUALITY.test("", "Ottimo!!", 3) is True


def test_low_quality_short_tokens_run():
    assert LOW_QUALITY.test("", "it is ok to do so if you can", 3) is True


def test_low_quality_does_not_flag_normal_sentences():
    assert LOW_QUALITY.test("", CLEAN, 4) is False
    assert LOW_QUALITY.test("", "a really long review with plenty of words in it", 4) is False


def test_suspicious_contact_solicitation():
    assert SUSPICIOUS.test("", "great content, message me on telegram for more", 5) is True
    assert SUSPICIOUS.test("", CLEAN, 4) is False


def test_fake_positive_only_on_max_rating():
    content = "Honestly the best creator ever, 100% recommended"
    assert FAKE_POSITIVE.test("", content, 5) is True
    assert FAKE_POSITIVE.test("", content, 4) is False


def test_copy_paste_placeholders():
    assert COPY_PASTE.test("", "I loved [creator name], five stars", 5) is True
    assert COPY_PASTE.test("Great {{name}}", CLEAN, 5) is True
    assert COPY_PASTE.test("", CLEAN, 5) is False


def test_sentiment_counts_and_mismatch():
    assert sentiment_counts("terrible, a waste, avoid") == (0, 3)
    assert sentiment_mismatch("terrible, a waste, avoid", 5) is True
    assert sentiment_mismatch("great and friendly, loved it", 1) is True
    assert sentiment_mismatch("great and friendly, loved it", 5) is False
    assert sentiment_mismatch("", 5) is False
    assert SENTIMENT_MISMATCH.test("Scam", "total waste of money", 4) is True


def test_families_keep_table_order():
    content = "[name] is the best creator ever, dm me"
    assert _flags("", content, 5) == ["suspicious_content", "fake_positive", "copy_paste_template"]
