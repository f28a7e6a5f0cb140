"""A small HCL reader for attribute and block configuration files."""

from __future__ import annotations

import json
import re
from typing import Any

_LEXER_RE = re.compile(
    r"""
    (?P<ws>[ \t\r\n]+)
    |(?P<comment>\#[^\n]*|//[^\n]*|/\*.*?\*/)
    |(?P<string>"(?:[^"\\\n]|\\.)*")
    |(?P<number>-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
    |(?P<ident>[A-Za-z_][A-Za-z0-9_\-]*)
    |(?P<punct>[=\{\}\[\],:])
    """,
    re.X | re.S,
)


class HclError(ValueError):
    """Raised when a document is not valid HCL."""


def _tokenize(text: str) -> list[tuple[str, str, int]]:
    lexemes = []
    pos = 0
    while pos < len(text):
        match = _LEXER_RE.match(text, pos)
        if not match:
            line = text.count("\n", 0, pos) + 1
            raise HclError(f"unexpected character {text[pos]!r} on line {line}")
        kind = match.lastgroup
        if kind not in ("ws", "comment"):
            lexemes.append((kind, match.group(), text.count("\n", 0, pos) + 1))
        pos = match.end()
    return lexemes


class _Parser:
    def __init__(self, text: str) -> None:
        self.items = _tokenize(text)
        self.pos = 0

    def peek(self):
        return self.items[self.pos] if self.pos < len(self.items) else None

    def take(self):
        item = self.peek()
        if item is None:
            raise HclError("unexpected end of input")
        self.pos += 1
        return item

    def expect(self, value: str):
        kind, text, line = self.take()
        if text != value or kind != "punct":
            raise HclError(f"expected {value!r}, found {text!r} on line {line}")

    def body(self, closed: bool) -> dict[str, Any]:
        result: dict[str, Any] = {}
        while True:
            item = self.peek()
            if item is None:
                if closed:
                    raise HclError("unclosed block")
                return result
            if item[:2] == ("punct", "}") and closed:
                self.pos += 1
                return result
            kind, key, line = self.take()
            if kind != "ident":
                raise HclError(f"expected identifier, found {key!r} on line {line}")
            nxt = self.peek()
            if nxt is not None and nxt[0] == "punct" and nxt[1] in ("=", ":"):
                self.pos += 1
                if key in result:
                    raise HclError(f"duplicate attribute {key!r} on line {line}")
                result[key] = self.value()
                continue
            labels = []
            while (item := self.peek()) is not None and item[0] in ("string", "ident"):
                self.pos += 1
                labels.append(json.loads(item[1]) if item[0] == "string" else item[1])
            self.expect("{")
            block = self.body(True)
            if not labels:
                result[key] = block
                continue
            target = result.setdefault(key, {})
            if not isinstance(target, dict):
                raise HclError(f"{key!r} is both an attribute and a block")
            for label in labels[:-1]:
                target = target.setdefault(label, {})
            target[labels[-1]] = block

    def value(self) -> Any:
        kind, text, line = self.take()
        if kind == "string":
            return json.loads(text)
        if kind == "number":
            return float(text) if any(c in text for c in ".eE") else int(text)
        if kind == "ident":
            literals = {"true": True, "false": False, "null": None}
            if text in literals:
                return literals[text]
            raise HclError(f"unknown value {text!r} on line {line}")
        if text == "[":
            items = []
            while self.peek() is not None and self.peek()[1] != "]":
                items.append(self.value())
                if self.peek() is not None and self.peek()[1] == ",":
                    self.pos += 1
            self.expect("]")
            return items
        if text == "{":
            obj = {}
            while self.peek() is not None and self.peek()[1] != "}":
                k_kind, k_text, k_line = self.take()
                if k_kind not in ("ident", "string"):
                    raise HclError(f"bad object key {k_text!r} on line {k_line}")
                name = json.loads(k_text) if k_kind == "string" else k_text
                _, sep, _ = self.take()
                if sep not in ("=", ":"):
                    raise HclError(f"expected '=' after {name!r}")
                obj[name] = self.value()
                if self.peek() is not None and self.peek()[1] == ",":
                    self.pos += 1
            self.expect("}")
            return obj
        raise HclError(f"unexpected {text!r} on line {line}")


def loads(text: str) -> dict[str, Any]:
    """Parse an HCL document; labelled blocks become nested dictionaries."""
    return _Parser(text).body(False)