"""Instruction grammar — ordered rules mapping step text to structured commands.

Rules are tried in list order and the first match wins, so specific phrasings
(fill with an explicit attribute, URL assertions) sit ahead of the generic
ones that would otherwise swallow them. A miss returns ``None``: the caller
escalates the instruction to AI planning.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from pydantic import TypeAdapter

from src.models.commands import (
    ASSERTION_KINDS,
    AssertPageContainsCommand,
    AssertTextContainsCommand,
    AssertTitleContainsCommand,
    AssertUrlContainsCommand,
    AssertValueCommand,
    AssertVisibleCommand,
    CheckUncheckCommand,
    ClickCommand,
    ConditionalCommand,
    FillCommand,
    LoginCommand,
    NavigateSpecificCommand,
    NavigateUrlCommand,
    SelectCommand,
    StructuredCommand,
    WaitCommand,
)

logger = logging.getLogger(__name__)

_ORDINAL_PREFIX_RE = re.compile(r"^\s*(?:step\s*)?\d+\s*[.):\-]\s*", re.IGNORECASE)
_SEPARATOR_RE = re.compile(r"\s*;\s*|\s*,?\s+(?:and\s+)?then\s+", re.IGNORECASE)
_CONDITIONAL_START_RE = re.compile(r"^if\s", re.IGNORECASE)

_VERIFY = r"^(?:verify|check|assert|ensure|confirm|validate)\s+(?:that\s+)?"
_ELEMENT_HINTS = r"button|link|tab|checkbox|radio|field|input|element|message|text|heading|dialog|modal|icon"

_COMMAND_ADAPTER: TypeAdapter = TypeAdapter(StructuredCommand)

Builder = Callable[[re.Match, "Grammar"], Optional[StructuredCommand]]


@dataclass(frozen=True)
class Rule:
    """One (pattern, builder) pair of the grammar."""
    name: str
    pattern: re.Pattern
    build: Builder

    def apply(self, text: str, grammar: "Grammar") -> StructuredCommand | None:
        match = self.pattern.match(text)
        if not match:
            return None
        return self.build(match, grammar)


def _rule(name: str, pattern: str, build: Builder) -> Rule:
    return Rule(name=name, pattern=re.compile(pattern, re.IGNORECASE), build=build)


def normalize_instruction(text: str) -> str:
    """Strip ordinal prefixes, smart quotes, trailing periods and extra spaces."""
    text = text.replace("“", '"').replace("”", '"')
    text = _ORDINAL_PREFIX_RE.sub("", text.strip())
    text = re.sub(r"\s+", " ", text).strip()
    return text.rstrip(".").strip()


def split_compound(text: str) -> list[str]:
    """Split "A then B", "A and then B" and "A; B" into parts, ignoring quoted text.

    A part that starts with "if" keeps its "then" clause intact.
    """
    parts: list[str] = []
    for chunk in _split_outside_quotes(text, re.compile(r"\s*;\s*")):
        if _CONDITIONAL_START_RE.match(chunk):
            parts.append(chunk)
        else:
            parts.extend(_split_outside_quotes(chunk, _SEPARATOR_RE))
    return [p for p in (normalize_instruction(p) for p in parts) if p]


def _split_outside_quotes(text: str, separator: re.Pattern) -> list[str]:
    pieces: list[str] = []
    start = 0
    for match in separator.finditer(text):
        if text.count('"', 0, match.start()) % 2:
            continue  # separator sits inside a quoted value
        pieces.append(text[start:match.start()])
        start = match.end()
    pieces.append(text[start:])
    return pieces


# ----------------------------------------------------------------------
# Builders
# ----------------------------------------------------------------------

_NAMED_PAGES = {
    "homepage": "homepage", "home page": "homepage", "home": "homepage",
    "login": "login", "log in": "login", "signin": "login", "sign in": "login",
    "contact": "contact",
    "register": "register", "registration": "register",
    "signup": "register", "sign up": "register",
}


def _navigate_named(m: re.Match, _g: "Grammar") -> StructuredCommand:
    key = re.sub(r"\s+", " ", m.group(1).lower())
    return NavigateSpecificCommand(page=_NAMED_PAGES[key])


def _navigate_url(m: re.Match, _g: "Grammar") -> StructuredCommand:
    return NavigateUrlCommand(url=m.group(1))


def _login(m: re.Match, _g: "Grammar") -> StructuredCommand:
    return LoginCommand(username=m.group(1), password=m.group(2))


def _conditional(m: re.Match, grammar: "Grammar") -> StructuredCommand | None:
    condition = grammar.parse(f"verify that {m.group(1)}")
    if condition is None or condition.kind not in ASSERTION_KINDS:
        return None
    then = grammar.parse(m.group(2))
    if then is None or then.kind == "conditional":
        return None
    return ConditionalCommand(condition=condition, then=then)


def _click_with_text(m: re.Match, _g: "Grammar") -> StructuredCommand:
    return ClickCommand(target=m.group(2), element_hint=m.group(1).lower())


def _click(m: re.Match, _g: "Grammar") -> StructuredCommand:
    hint = m.group(2).lower() if m.group(2) else None
    return ClickCommand(target=m.group(1).strip(), element_hint=hint)


def _fill_with_attribute(m: re.Match, _g: "Grammar") -> StructuredCommand:
    return FillCommand(target=m.group(3), value=m.group(1), attribute=m.group(2).lower())


def _fill_field_with(m: re.Match, _g: "Grammar") -> StructuredCommand:
    return FillCommand(target=m.group(1), value=m.group(2))


def _fill(m: re.Match, _g: "Grammar") -> StructuredCommand:
    target = m.group("quoted") or m.group("bare")
    return FillCommand(target=target.strip(), value=m.group("value"))


def _select(m: re.Match, _g: "Grammar") -> StructuredCommand:
    return SelectCommand(target=m.group(2), value=m.group(1))


def _check_uncheck(m: re.Match, _g: "Grammar") -> StructuredCommand:
    verb = m.group(1).lower()
    return CheckUncheckCommand(target=m.group(2), checked=verb in ("check", "tick"))


def _wait(m: re.Match, _g: "Grammar") -> StructuredCommand:
    return WaitCommand(seconds=float(m.group(1)))


def _assert_url(m: re.Match, _g: "Grammar") -> StructuredCommand:
    return AssertUrlContainsCommand(expected=m.group(1))


def _assert_title(m: re.Match, _g: "Grammar") -> StructuredCommand:
    return AssertTitleContainsCommand(text=m.group(1))


def _assert_value(m: re.Match, _g: "Grammar") -> StructuredCommand:
    return AssertValueCommand(target=m.group(1), value=m.group(2))


def _assert_text(m: re.Match, _g: "Grammar") -> StructuredCommand:
    return AssertTextContainsCommand(target=m.group(1), text=m.group(2))


def _assert_visible(m: re.Match, _g: "Grammar") -> StructuredCommand:
    hint = m.group(2).lower() if m.group(2) else None
    return AssertVisibleCommand(target=m.group(1), element_hint=hint)


def _assert_page(m: re.Match, _g: "Grammar") -> StructuredCommand:
    return AssertPageContainsCommand(text=m.group(1))


def default_rules() -> list[Rule]:
    """The built-in ruleset, most specific first."""
    return [
        _rule("navigate_named",
              r"^(?:navigate|go|browse)\s+(?:back\s+)?to\s+(?:the\s+)?"
              r"(home\s?page|home|log\s?in|sign\s?in|contact|register|registration|sign\s?up)"
              r"(?:\s+page)?$",
              _navigate_named),
        _rule("navigate_url",
              r"^(?:navigate\s+to|go\s+to|browse\s+to|open|visit)\s+(?:the\s+)?(?:url\s+|page\s+)?"
              r"\"?((?:https?://|/)[^\s\"]*)\"?$",
              _navigate_url),
        _rule("login",
              r"^log\s?in\s+(?:with|using)\s+(?:(?:email|username|user)\s+)?\"([^\"]+)\"\s+"
              r"and\s+(?:password\s+)?\"([^\"]+)\"$",
              _login),
        _rule("conditional",
              r"^if\s+(.+?)(?:\s*,\s*then|\s*,|\s+then)\s+(.+)$",
              _conditional),
        _rule("click_with_text",
              r"^click\s+(?:on\s+)?the\s+(button|link|tab)\s+with\s+(?:the\s+)?text\s+\"([^\"]+)\"$",
              _click_with_text),
        _rule("fill_with_attribute",
              r"^(?:enter|type|fill|input)\s+\"([^\"]*)\"\s+(?:into|in)\s+the\s+(?:input\s+|text\s+)?"
              r"(?:field|input|box|textarea)\s+with\s+(?:the\s+)?(placeholder|name|id|label)\s+\"([^\"]+)\"$",
              _fill_with_attribute),
        _rule("fill_field_with",
              r"^fill\s+(?:in\s+|out\s+)?(?:the\s+)?\"([^\"]+)\"(?:\s+(?:field|input|box|textarea))?"
              r"\s+with\s+\"([^\"]*)\"$",
              _fill_field_with),
        _rule("fill",
              r"^(?:fill|enter|type|input)\s+\"(?P<value>[^\"]*)\"\s+(?:into|in|on)\s+(?:the\s+)?"
              r"(?:\"(?P<quoted>[^\"]+)\"|(?P<bare>[\w][\w\s-]*?))"
              r"(?:\s+(?:field|input|box|textarea))?$",
              _fill),
        _rule("select",
              r"^(?:select|choose|pick)\s+\"([^\"]+)\"\s+(?:from|in)\s+(?:the\s+)?\"([^\"]+)\""
              r"(?:\s+(?:dropdown|select|list|menu|field))?$",
              _select),
        _rule("check_uncheck",
              r"^(check|uncheck|tick|untick)\s+(?:the\s+)?\"([^\"]+)\""
              r"(?:\s+(?:checkbox|box|option|radio(?:\s+button)?))?$",
              _check_uncheck),
        _rule("click",
              r"^(?:click|press|tap)\s+(?:on\s+)?(?:the\s+)?\"([^\"]+)\""
              r"(?:\s+(button|link|tab|checkbox|radio|icon|element|option))?$",
              _click),
        _rule("click_unquoted",
              r"^(?:click|press|tap)\s+(?:on\s+)?(?:the\s+)?([\w][\w\s-]*?)\s+(button|link|tab|checkbox|radio|icon)$",
              _click),
        _rule("wait",
              r"^wait\s+(?:for\s+)?(\d+(?:\.\d+)?)\s*(?:seconds?|secs?|s)?$",
              _wait),
        _rule("assert_url_contains",
              _VERIFY + r"(?:the\s+)?(?:page\s+|current\s+)?url\s+(?:contains|includes|has)\s+\"([^\"]+)\"$",
              _assert_url),
        _rule("assert_title_contains",
              _VERIFY + r"(?:the\s+)?(?:page\s+)?title\s+(?:contains|includes|is)\s+\"([^\"]+)\"$",
              _assert_title),
        _rule("assert_value",
              _VERIFY + r"(?:the\s+)?\"([^\"]+)\"(?:\s+(?:field|input|box))?\s+(?:has|contains|shows)\s+"
              r"(?:the\s+)?value\s+\"([^\"]*)\"$",
              _assert_value),
        _rule("assert_text_contains",
              _VERIFY + r"(?:the\s+)?\"([^\"]+)\"(?:\s+(?:" + _ELEMENT_HINTS + r"|section|label))?\s+"
              r"(?:contains|shows|displays|reads)\s+(?:the\s+)?(?:text\s+)?\"([^\"]+)\"$",
              _assert_text),
        _rule("assert_page_shows_text",
              _VERIFY + r"(?:the\s+)?(?:text\s+)?\"([^\"]+)\"\s+(?:is\s+)?(?:displayed|shown|visible|present)\s+"
              r"on\s+the\s+page$",
              _assert_page),
        _rule("assert_visible",
              _VERIFY + r"(?:the\s+)?\"([^\"]+)\"(?:\s+(" + _ELEMENT_HINTS + r"))?\s+(?:is\s+)?"
              r"(?:visible|displayed|shown|present)$",
              _assert_visible),
        _rule("assert_page_contains",
              _VERIFY + r"(?:the\s+)?page\s+(?:contains|shows|displays|includes)\s+(?:the\s+)?(?:text\s+)?"
              r"\"([^\"]+)\"$",
              _assert_page),
    ]


class Grammar:
    """An ordered ruleset; rule order is precedence."""

    def __init__(self, rules: list[Rule] | None = None):
        self.rules = list(rules) if rules is not None else default_rules()

    @property
    def rule_names(self) -> list[str]:
        return [r.name for r in self.rules]

    def match_rule(self, text: str) -> tuple[Rule, StructuredCommand] | None:
        """Return the first rule that matches ``text`` with the command it builds."""
        normalized = normalize_instruction(text)
        for rule in self.rules:
            command = rule.apply(normalized, self)
            if command is not None:
                return rule, command
        return None

    def parse(self, text: str) -> StructuredCommand | None:
        """Parse a single instruction. Returns None when no rule matches."""
        matched = self.match_rule(text)
        if matched is None:
            logger.debug("Grammar: no rule matched '%s'", text)
            return None
        rule, command = matched
        logger.debug("Grammar: '%s' -> %s via %s", text, command.kind, rule.name)
        return command

    def parse_steps(self, text: str) -> list[StructuredCommand] | None:
        """Parse a possibly compound instruction into commands run in sequence.

        Returns None if any part fails to parse, so the whole instruction
        is escalated rather than half-executed.
        """
        parts = split_compound(text)
        if not parts:
            return None
        commands: list[StructuredCommand] = []
        for part in parts:
            command = self.parse(part)
            if command is None:
                return None
            commands.append(command)
        return commands

    @staticmethod
    def command_from_dict(data: dict) -> StructuredCommand:
        """Rebuild a command from its JSON form (kind-tagged)."""
        return _COMMAND_ADAPTER.validate_python(data)


DEFAULT_GRAMMAR = Grammar()


def parse_instruction(text: str) -> StructuredCommand | None:
    """Parse one instruction with the default grammar."""
    return DEFAULT_GRAMMAR.parse(text)
