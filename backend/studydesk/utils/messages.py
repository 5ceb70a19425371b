"""Bilingual (Korean/English) messages for API error bodies.

The caller's language comes from the ``Accept-Language`` header; Korean
is the default for a missing header or a language we do not carry.

Usage:
    from studydesk.utils.messages import get_language, msg
    lang = get_language(request)
    msg("note.not_found", lang)                      # → "노트를 찾을 수 없습니다." or "Note not found."
    msg("note.update_fields_required", lang, fields="a, b")
"""

from __future__ import annotations

from fastapi import Request

SUPPORTED_LANGUAGES = ("ko", "en")
DEFAULT_LANGUAGE = "ko"

_MESSAGES: dict[str, dict[str, str]] = {
    # Auth
    "auth.required": {
        "ko": "로그인이 필요합니다.",
        "en": "Login required.",
    },
    "auth.forbidden": {
        "ko": "권한이 없습니다.",
        "en": "You do not have permission.",
    },
    "auth.pending_approval": {
        "ko": "가입 승인 대기 중입니다.",
        "en": "Your account is pending approval.",
    },
    # Notes
    "note.not_found": {
        "ko": "노트를 찾을 수 없습니다.",
        "en": "Note not found.",
    },
    "note.update_fields_required": {
        "ko": "{fields} 중 하나가 필요합니다.",
        "en": "One of {fields} is required.",
    },
    "note.update_failed": {
        "ko": "변경에 실패했습니다.",
        "en": "Update failed.",
    },
    "note.delete_failed": {
        "ko": "삭제 중 오류가 났습니다.",
        "en": "An error occurred while deleting.",
    },
    # Categories
    "category.not_found": {
        "ko": "카테고리를 찾을 수 없습니다.",
        "en": "Category not found.",
    },
    "category.name_required": {
        "ko": "카테고리 이름을 입력해주세요.",
        "en": "Please enter a category name.",
    },
    # Links
    "link.not_found": {
        "ko": "링크를 찾을 수 없습니다.",
        "en": "Link not found.",
    },
    "link.title_url_required": {
        "ko": "제목과 URL을 입력해주세요.",
        "en": "Please enter a title and URL.",
    },
    "group.not_found": {
        "ko": "그룹을 찾을 수 없습니다.",
        "en": "Group not found.",
    },
    "group.name_required": {
        "ko": "그룹 이름을 입력해주세요.",
        "en": "Please enter a group name.",
    },
    "subgroup.not_found": {
        "ko": "소그룹을 찾을 수 없습니다.",
        "en": "Subgroup not found.",
    },
    "subgroup.name_required": {
        "ko": "소그룹 이름을 입력해주세요.",
        "en": "Please enter a subgroup name.",
    },
    # Projects
    "project.not_found": {
        "ko": "프로젝트를 찾을 수 없습니다.",
        "en": "Project not found.",
    },
    # Ordering / storage / generic
    "order.failed": {
        "ko": "순서 변경에 실패했습니다.",
        "en": "Failed to change the order.",
    },
    "storage.failed": {
        "ko": "파일 저장소 요청에 실패했습니다.",
        "en": "File storage request failed.",
    },
    "error.upstream": {
        "ko": "요청을 처리하는 중 오류가 났습니다.",
        "en": "An error occurred while processing the request.",
    },
}


def msg(key: str, lang: str = "ko", **kwargs: object) -> str:
    """Return a translated message for the given key and language.

    Args:
        key: Dot-separated message key (e.g. "note.not_found").
        lang: Language code ("ko" or "en").
        **kwargs: Interpolation variables for the message template.

    Returns:
        Translated and formatted message string.
        Falls back to Korean if key not found for the requested language.
    """
    entry = _MESSAGES.get(key)
    if entry is None:
        return key

    template = entry.get(lang, entry.get("ko", key))
    if kwargs:
        try:
            return template.format(**kwargs)
        except (KeyError, IndexError):
            return template
    return template


def _weighted_tags(header: str) -> list[tuple[float, int, str]]:
    tags = []
    for position, part in enumerate(header.split(",")):
        tag, _, params = part.strip().partition(";")
        weight = 1.0
        params = params.strip()
        if params.startswith("q="):
            try:
                weight = float(params[2:])
            except ValueError:
                weight = 0.0
        if tag:
            tags.append((weight, position, tag.strip().lower()))
    return tags


def get_language(request: Request) -> str:
    """Pick 'ko' or 'en' from the request's Accept-Language header.

    Entries are ranked by their ``q`` weight (header order breaks ties), and
    the first one whose primary subtag is supported wins. ``en-US`` counts
    as ``en``. Entries with ``q=0`` are never chosen. Anything else, or a
    missing header, gives :data:`DEFAULT_LANGUAGE`.
    """
    header = request.headers.get("accept-language", "")
    for weight, _, tag in sorted(_weighted_tags(header), key=lambda t: (-t[0], t[1])):
        primary = tag.split("-")[0]
        if weight > 0 and primary in SUPPORTED_LANGUAGES:
            return primary
    return DEFAULT_LANGUAGE
