"""Condense an article into a single LinkedIn post (3000 character limit)."""
from typing import List, Optional

LINKEDIN_CHAR_LIMIT = 3000
TRUNCATION_SUFFIX = "..."
SEPARATOR = "\n\n"

# Mathematical Alphanumeric Symbols, the only "bold" LinkedIn renders
BOLD_UPPER = 0x1D400
BOLD_LOWER = 0x1D41A


def to_bold(text: str) -> str:
    out = []
    for ch in text:
        if "A" <= ch <= "Z":
            out.append(chr(BOLD_UPPER + ord(ch) - ord("A")))
        elif "a" <= ch <= "z":
            out.append(chr(BOLD_LOWER + ord(ch) - ord("a")))
        else:
            out.append(ch)
    return "".join(out)


def truncate_text(text: str, max_length: int) -> str:
    """Cut at a word boundary when one is close to the limit, else hard cut; appends '...'."""
    if len(text) <= max_length:
        return text
    cut = text[:max_length]
    last_space = cut.rfind(" ")
    if last_space > max_length * 0.8:
        cut = cut[:last_space]
    return cut + TRUNCATION_SUFFIX


def format_article_for_linkedin(
    title: str,
    introduction: str,
    sections: List[str],
    conclusion: str,
    subtitle: Optional[str] = None,
    bold_title: bool = True,
    limit: int = LINKEDIN_CHAR_LIMIT,
) -> str:
    parts = [to_bold(title) if bold_title else title]
    if subtitle:
        parts.append(subtitle)
    parts.append(introduction)

    sections = [s for s in sections if s]
    base = SEPARATOR.join(parts)
    available = limit - len(base) - len(SEPARATOR + conclusion) - len(SEPARATOR) * len(sections)

    included: List[str] = []
    for section in sections:
        if len(section) <= available:
            included.append(section)
            available -= len(section) + len(SEPARATOR)
        elif available > 100:
            included.append(truncate_text(section, available - len(TRUNCATION_SUFFIX)))
            break
        else:
            break

    result = SEPARATOR.join(parts + included + [conclusion])
    if len(result) > limit:
        result = truncate_text(result, limit - len(TRUNCATION_SUFFIX))
    return result


def format_article(article) -> str:
    return format_article_for_linkedin(
        title=article.title or "",
        subtitle=article.subtitle,
        introduction=article.introduction or "",
        sections=list(article.sections or []),
        conclusion=article.conclusion or "",
    )
