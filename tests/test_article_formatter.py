from linwheel.services.article_formatter import (
    LINKEDIN_CHAR_LIMIT,
    format_article_for_linkedin,
    to_bold,
    truncate_text,
)


def test_to_bold_maps_letters_only():
    assert to_bold("Ab1!") == "\U0001D400\U0001D41B1!"


def test_truncate_prefers_word_boundary():
    text = "word " * 30
    out = truncate_text(text, 50)
    assert out.endswith("...")
    assert len(out) <= 53
    assert not out[:-3].endswith(" ")
    assert truncate_text("short", 50) == "short"


def test_truncate_hard_cuts_without_nearby_space():
    out = truncate_text("a" * 100, 40)
    assert out == "a" * 40 + "..."


def test_short_article_is_kept_whole():
    out = format_article_for_linkedin("Title", "Intro", ["One", "Two"], "End", subtitle="Sub")
    assert out == "\n\n".join([to_bold("Title"), "Sub", "Intro", "One", "Two", "End"])


def test_long_article_fits_the_limit_and_keeps_conclusion():
    sections = [("section %d " % i) * 80 for i in range(6)]
    out = format_article_for_linkedin("Title", "Intro " * 20, sections, "The conclusion.")
    assert len(out) <= LINKEDIN_CHAR_LIMIT
    assert out.endswith("The conclusion.")
    assert sections[0] in out
    assert sections[5] not in out


def test_oversized_intro_is_truncated():
    out = format_article_for_linkedin("T", "x " * 4000, [], "End", bold_title=False)
    assert len(out) <= LINKEDIN_CHAR_LIMIT
    assert out.endswith("...")
