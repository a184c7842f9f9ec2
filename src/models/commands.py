"""Structured commands produced by the instruction grammar."""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Command(BaseModel):
    model_config = ConfigDict(frozen=True)


class NavigateSpecificCommand(_Command):
    kind: Literal["navigate_specific"] = "navigate_specific"
    page: str  # homepage, login, contact, register


class NavigateUrlCommand(_Command):
    kind: Literal["navigate_url"] = "navigate_url"
    url: str


class ClickCommand(_Command):
    kind: Literal["click"] = "click"
    target: str
    element_hint: Optional[str] = None  # button, link, tab, checkbox, radio


class FillCommand(_Command):
    kind: Literal["fill"] = "fill"
    target: str
    value: str
    attribute: Optional[Literal["label", "placeholder", "name", "id"]] = None


class SelectCommand(_Command):
    kind: Literal["select"] = "select"
    target: str
    value: str


class WaitCommand(_Command):
    kind: Literal["wait"] = "wait"
    seconds: float


class CheckUncheckCommand(_Command):
    kind: Literal["check_uncheck"] = "check_uncheck"
    target: str
    checked: bool = True


class LoginCommand(_Command):
    kind: Literal["login"] = "login"
    username: str
    password: str


class AssertUrlContainsCommand(_Command):
    kind: Literal["assert_url_contains"] = "assert_url_contains"
    expected: str


class AssertPageContainsCommand(_Command):
    kind: Literal["assert_page_contains"] = "assert_page_contains"
    text: str


class AssertTitleContainsCommand(_Command):
    kind: Literal["assert_title_contains"] = "assert_title_contains"
    text: str


class AssertVisibleCommand(_Command):
    kind: Literal["assert_visible"] = "assert_visible"
    target: str
    element_hint: Optional[str] = None


class AssertTextContainsCommand(_Command):
    kind: Literal["assert_text_contains"] = "assert_text_contains"
    target: str
    text: str


class AssertValueCommand(_Command):
    kind: Literal["assert_value"] = "assert_value"
    target: str
    value: str


class ConditionalCommand(_Command):
    """Run ``then`` only if ``condition`` succeeds; a failed condition skips the step."""

    kind: Literal["conditional"] = "conditional"
    condition: "StructuredCommand"
    then: "StructuredCommand"


StructuredCommand = Annotated[
    Union[
        NavigateSpecificCommand,
        NavigateUrlCommand,
        ClickCommand,
        FillCommand,
        SelectCommand,
        WaitCommand,
        CheckUncheckCommand,
        LoginCommand,
        AssertUrlContainsCommand,
        AssertPageContainsCommand,
        AssertTitleContainsCommand,
        AssertVisibleCommand,
        AssertTextContainsCommand,
        AssertValueCommand,
        ConditionalCommand,
    ],
    Field(discriminator="kind"),
]

ConditionalCommand.model_rebuild()

ASSERTION_KINDS = frozenset({
    "assert_url_contains",
    "assert_page_contains",
    "assert_title_contains",
    "assert_visible",
    "assert_text_contains",
    "assert_value",
})
