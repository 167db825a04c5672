"""Page-level CSS scoping.

When several templates are composed into one document, each one's stylesheet is rewritten so
that every rule only reaches the elements of its own page wrapper:

    .title{color:red}      ->  .page-A .title{color:red}
    body{margin:0}         ->  .page-A{margin:0}
    :root{--brand:#123}    ->  unchanged (custom properties stay global)
    @media print{...}      ->  nested rules scoped, the at-rule itself kept
    @page / @font-face / @keyframes / statement at-rules  ->  verbatim

The scanner only understands the block structure of CSS (strings, comments, braces); it does not
validate declarations, and malformed trailing input is copied through unchanged."""

from __future__ import annotations

import re
from typing import List, Tuple

import soupsieve

PAGE_CLASS_PREFIX = "page-"

# At-rules whose block holds ordinary rules that must be scoped as well
NESTED_RULE_AT_RULES = {"media", "supports", "document", "-moz-document", "container", "layer"}
# characters that can follow the scope class in a selector that is already scoped
SCOPE_BOUNDARY = (">", "+", "~", ".", ":", "[", "#")

_ROOT_ELEMENT_RE = re.compile(r"(?:html|body)(?![\w-])", re.IGNORECASE)


def page_class(page_id: str) -> str:
    """Class name carried by a page wrapper."""
    return f"{PAGE_CLASS_PREFIX}{page_id}"


def page_selector(page_id: str) -> str:
    return "." + soupsieve.escape(page_class(page_id))


class _Scanner:
    """Cursor over a stylesheet that skips strings and comments when looking for delimiters."""

    def __init__(self, text: str):
        self.text = text
        self.length = len(text)

    def skip_string(self, pos: int) -> int:
        quote = self.text[pos]
        pos += 1
        while pos < self.length:
            char = self.text[pos]
            if char == "\\":
                pos += 2
                continue
            if char == quote or char == "\n":
                return pos + 1
            pos += 1
        return self.length

    def skip_comment(self, pos: int) -> int:
        end = self.text.find("*/", pos + 2)
        return self.length if end == -1 else end + 2

    def find_prelude_end(self, pos: int) -> Tuple[int, str]:
        """Return the index and character of the first top-level ``{`` or ``;`` at or after pos."""
        depth = 0
        while pos < self.length:
            char = self.text[pos]
            if char in "\"'":
                pos = self.skip_string(pos)
                continue
            if self.text.startswith("/*", pos):
                pos = self.skip_comment(pos)
                continue
            if char in "([":
                depth += 1
            elif char in ")]":
                depth = max(0, depth - 1)
            elif depth == 0 and char in "{;":
                return pos, char
            elif depth == 0 and char == "}":
                return pos, char
            pos += 1
        return self.length, ""

    def find_block_end(self, open_pos: int) -> int:
        """Index just after the ``}`` matching the ``{`` at open_pos."""
        depth = 0
        pos = open_pos
        while pos < self.length:
            char = self.text[pos]
            if char in "\"'":
                pos = self.skip_string(pos)
                continue
            if self.text.startswith("/*", pos):
                pos = self.skip_comment(pos)
                continue
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return pos + 1
            pos += 1
        return self.length


def split_selector_list(prelude: str) -> List[str]:
    """Split a selector list on top-level commas, keeping surrounding whitespace in each part."""
    parts: List[str] = []
    depth = 0
    start = 0
    pos = 0
    quote = ""
    while pos < len(prelude):
        char = prelude[pos]
        if quote:
            if char == "\\":
                pos += 2
                continue
            if char == quote:
                quote = ""
        elif char in "\"'":
            quote = char
        elif char in "([":
            depth += 1
        elif char in ")]":
            depth = max(0, depth - 1)
        elif char == "," and depth == 0:
            parts.append(prelude[start:pos])
            start = pos + 1
        pos += 1
    parts.append(prelude[start:])
    return parts


def _is_already_scoped(core: str, scope: str) -> bool:
    """Whether the selector starts with the scope class itself, not a longer class name."""
    if not core.startswith(scope):
        return False
    following = core[len(scope):len(scope) + 1]
    return not following or following.isspace() or following in SCOPE_BOUNDARY


def scope_selector(selector: str, scope: str) -> str:
    """Prefix one complex selector with the page scope.

    Leading html/body type selectors are the page itself, so they collapse into the scope."""
    leading = selector[: len(selector) - len(selector.lstrip())]
    trailing = selector[len(selector.rstrip()):]
    core = selector.strip()
    if not core:
        return selector
    if _is_already_scoped(core, scope):
        return selector

    rest = core
    matched_root = False
    while True:
        match = _ROOT_ELEMENT_RE.match(rest)
        if not match:
            break
        matched_root = True
        remainder = rest[match.end():]
        stripped = remainder.lstrip()
        if stripped.startswith(">"):
            stripped = stripped[1:].lstrip()
            if _ROOT_ELEMENT_RE.match(stripped):
                rest = stripped
                continue
            rest = "> " + stripped if stripped else ""
            break
        if remainder and not remainder[0].isspace():
            # compound selector on the root element itself, e.g. body.dark or html:hover
            rest = remainder
            return f"{leading}{scope}{rest}{trailing}"
        rest = stripped
        if not rest:
            break

    if matched_root:
        scoped = f"{scope} {rest}" if rest else scope
    else:
        scoped = f"{scope} {core}"
    return f"{leading}{scoped}{trailing}"


def scope_prelude(prelude: str, scope: str) -> str:
    """Scope every selector of a rule prelude; rules touching :root are left global."""
    if ":root" in prelude:
        return prelude
    return ",".join(scope_selector(part, scope) for part in split_selector_list(prelude))


def _scope_block(css: str, scope: str) -> str:
    scanner = _Scanner(css)
    out: List[str] = []
    pos = 0

    while pos < scanner.length:
        char = css[pos]

        if char.isspace():
            end = pos
            while end < scanner.length and css[end].isspace():
                end += 1
            out.append(css[pos:end])
            pos = end
            continue

        if css.startswith("/*", pos):
            end = scanner.skip_comment(pos)
            out.append(css[pos:end])
            pos = end
            continue

        if css.startswith("<!--", pos) or css.startswith("-->", pos):
            end = pos + (4 if css.startswith("<!--", pos) else 3)
            out.append(css[pos:end])
            pos = end
            continue

        if char == "}":
            # stray closing brace
            out.append(char)
            pos += 1
            continue

        delimiter_pos, delimiter = scanner.find_prelude_end(pos)

        if char == "@":
            name_match = re.match(r"@([-\w]+)", css[pos:])
            name = name_match.group(1).lower() if name_match else ""
            if delimiter != "{":
                end = delimiter_pos + 1 if delimiter == ";" else delimiter_pos
                out.append(css[pos:end])
                pos = end
                continue
            block_end = scanner.find_block_end(delimiter_pos)
            if name in NESTED_RULE_AT_RULES:
                inner_end = block_end - 1 if css[block_end - 1:block_end] == "}" else block_end
                out.append(css[pos:delimiter_pos + 1])
                out.append(_scope_block(css[delimiter_pos + 1:inner_end], scope))
                out.append(css[inner_end:block_end])
            else:
                out.append(css[pos:block_end])
            pos = block_end
            continue

        if delimiter != "{":
            # declaration-like junk without a block; keep it
            end = delimiter_pos + 1 if delimiter == ";" else delimiter_pos
            if end == pos:
                end = pos + 1
            out.append(css[pos:end])
            pos = end
            continue

        block_end = scanner.find_block_end(delimiter_pos)
        out.append(scope_prelude(css[pos:delimiter_pos], scope))
        out.append(css[delimiter_pos:block_end])
        pos = block_end

    return "".join(out)


def scope_css(css: str, page_id: str) -> str:
    """Rewrite a stylesheet so its rules only apply inside the wrapper of one page."""
    if not css or not css.strip():
        return css or ""
    return _scope_block(css, page_selector(page_id))


__all__ = [
    "PAGE_CLASS_PREFIX",
    "page_class",
    "page_selector",
    "split_selector_list",
    "scope_selector",
    "scope_prelude",
    "scope_css",
]
