"""
계정 경로 prefix → SQLite GLOB 패턴 변환

GLOB 메타문자 "*", "?", "[" 를 문자 클래스로 감싸 리터럴로 만든 뒤
끝에 "*"를 붙인다. "]" 는 클래스 밖에서 리터럴이므로 그대로 둔다.

주의: 세그먼트 경계를 보지 않는 문자열 startswith 의미.
"/org" prefix는 "/organization" 에도 매칭된다.
"""

GLOB_ESCAPES: dict[str, str] = {
    "[": "[[]",
    "*": "[*]",
    "?": "[?]",
}


def escape_glob(text: str) -> str:
    """GLOB 메타문자 이스케이프 (문자 단위 치환)"""
    return "".join(GLOB_ESCAPES.get(ch, ch) for ch in text)


def glob_prefix_pattern(prefix: str) -> str:
    """prefix 조회용 GLOB 패턴 생성

    Example:
        >>> glob_prefix_pattern("/org")
        '/org*'
        >>> glob_prefix_pattern("/a*b")
        '/a[*]b*'
        >>> glob_prefix_pattern("/x[?]")
        '/x[[][?]]*'
    """
    return escape_glob(prefix) + "*"
