"""Tests for the form skills and their registry."""

import pytest

from src.errors import ElementNotFound, QAError, UnknownSkill
from src.executor.command_executor import CommandExecutor
from src.models.plan import (
    FieldMapping,
    FormField,
    ValidationPlan,
    ValidationScenario,
    ValidationStep,
)
from src.skills.data_generator import DataGenerator
from src.skills.fill_form import FillFormHappyPath, fill_field, find_submit_button
from src.skills.form_fields import (
    FILLABLE_SELECTOR,
    discover_fields,
    field_locator,
)
from src.skills.form_validation import TestFormValidation
from src.skills.registry import SkillRegistry, default_registry

DIALOG = '[role="dialog"] >> visible=true >> nth=0'


@pytest.fixture
def form(make_page, make_locator, make_raw_field):
    """A page whose body holds a two-field form with a submit button."""
    first_name = make_locator(1)
    email = make_locator(1)
    submit = make_locator(1)
    fields = make_locator(items=[first_name, email])
    fields.evaluate_all.return_value = [
        make_raw_field(0, label="First name", name="first"),
        make_raw_field(1, label="Email", name="email", input_type="email"),
    ]
    context = make_locator(
        1,
        labels={"First name": first_name, "Email": email},
        selectors={FILLABLE_SELECTOR: fields, 'button[type="submit"]': submit},
    )
    page = make_page(url="https://example.com/agents/new", selectors={"body": context, DIALOG: context})
    return {
        "page": page,
        "context": context,
        "fields": fields,
        "first_name": first_name,
        "email": email,
        "submit": submit,
    }


class TestFieldHelpers:
    def test_field_locator_uses_position(self, make_locator):
        fields = make_locator(5)
        context = make_locator(1, selectors={FILLABLE_SELECTOR: fields})

        field_locator(context, FormField(key="x", index=3))

        fields.nth.assert_called_once_with(3)


@pytest.mark.asyncio
class TestDiscoverFields:
    async def test_keys_and_filtering(self, make_locator, make_raw_field):
        fields = make_locator(6)
        fields.evaluate_all.return_value = [
            make_raw_field(0, label="First name", name="first"),
            make_raw_field(1, name="last"),
            make_raw_field(2, placeholder="Phone"),
            make_raw_field(3, label="Hidden", visible=False),
            make_raw_field(4, label="Locked", usable=False),
            make_raw_field(5),
        ]
        context = make_locator(1, selectors={FILLABLE_SELECTOR: fields})

        discovered = await discover_fields(context)

        assert [f.key for f in discovered] == ["First name", "last", "Phone"]
        assert [f.index for f in discovered] == [0, 1, 2]

    async def test_duplicate_keys_are_numbered(self, make_locator, make_raw_field):
        fields = make_locator(2)
        fields.evaluate_all.return_value = [
            make_raw_field(0, label="Phone"),
            make_raw_field(1, label="Phone"),
        ]
        context = make_locator(1, selectors={FILLABLE_SELECTOR: fields})

        discovered = await discover_fields(context)

        assert [f.key for f in discovered] == ["Phone", "Phone (2)"]


@pytest.mark.asyncio
class TestFindSubmitButton:
    async def test_prefers_submit_type(self, form):
        assert await find_submit_button(form["context"]) is form["submit"]

    async def test_role_name_fallback(self, make_locator):
        save = make_locator(1)
        context = make_locator(1, roles={("button", "Create agent"): save})

        assert await find_submit_button(context) is save

    async def test_none(self, make_locator):
        assert await find_submit_button(make_locator(1)) is None


@pytest.mark.asyncio
class TestFillFormHappyPath:
    async def test_fills_and_submits(self, form, framework_config, mock_planner):
        mock_planner.map_form_fields.return_value = {
            "First name": FieldMapping(namespace="person", method="firstName"),
        }
        skill = FillFormHappyPath(mock_planner, framework_config, DataGenerator(seed=7))

        result = await skill.run(form["page"], "body")

        assert result.filled_fields == ["First name", "Email"]
        assert result.submitted is True
        form["first_name"].fill.assert_awaited_once()
        assert "@" in form["email"].fill.await_args.args[0]
        form["submit"].click.assert_awaited_once_with(timeout=1000)
        form["page"].wait_for_load_state.assert_awaited_with("networkidle", timeout=500)

        mapped_fields = mock_planner.map_form_fields.await_args.args[0]
        assert [f.key for f in mapped_fields] == ["First name", "Email"]

    async def test_modal_must_close(self, form, framework_config, mock_planner):
        skill = FillFormHappyPath(mock_planner, framework_config)

        await skill.run(form["page"], DIALOG)

        form["context"].wait_for.assert_awaited_once_with(state="hidden", timeout=500)

    async def test_modal_that_stays_open_fails(self, form, framework_config, mock_planner):
        form["context"].wait_for.side_effect = Exception("Timeout 500ms exceeded")
        skill = FillFormHappyPath(mock_planner, framework_config)

        with pytest.raises(Exception, match="Timeout"):
            await skill.run(form["page"], DIALOG)

    async def test_unfillable_field_is_skipped(self, form, framework_config, mock_planner):
        form["email"].fill.side_effect = Exception("Element is detached")
        skill = FillFormHappyPath(mock_planner, framework_config)

        result = await skill.run(form["page"], "body")

        assert result.filled_fields == ["First name"]
        assert result.submitted is True

    async def test_no_fields(self, make_page, make_locator, framework_config, mock_planner):
        page = make_page(selectors={"body": make_locator(1)})
        skill = FillFormHappyPath(mock_planner, framework_config)

        with pytest.raises(QAError, match="no fillable fields"):
            await skill.run(page, "body")
        mock_planner.map_form_fields.assert_not_awaited()

    async def test_no_submit_button(self, form, framework_config, mock_planner):
        form["submit"].is_visible.return_value = False
        skill = FillFormHappyPath(mock_planner, framework_config)

        with pytest.raises(ElementNotFound, match="submit button"):
            await skill.run(form["page"], "body")


@pytest.fixture
def account_form(make_page, make_locator, make_raw_field):
    """A form where one label ("Name") is a substring of another ("Username")."""
    username = make_locator(1)
    name = make_locator(1)
    submit = make_locator(1)
    fields = make_locator(items=[username, name])
    fields.evaluate_all.return_value = [
        make_raw_field(0, label="Username", name="username"),
        make_raw_field(1, label="Name", name="name"),
    ]
    context = make_locator(
        1,
        labels={"Username": username, "Name": name},
        selectors={FILLABLE_SELECTOR: fields, 'button[type="submit"]': submit},
    )
    page = make_page(url="https://example.com/signup", selectors={"body": context})
    return {"page": page, "context": context, "username": username, "name": name}


@pytest.mark.asyncio
class TestFillField:
    async def test_fills_field_at_its_own_position(self, account_form):
        field = FormField(key="Name", label="Name", name="name", index=1)

        await fill_field(account_form["context"], field, "Ada", 1000)

        account_form["name"].fill.assert_awaited_once_with("Ada", timeout=1000)
        account_form["username"].fill.assert_not_awaited()

    async def test_checkbox_is_checked(self, make_locator):
        box = make_locator(1)
        context = make_locator(1, selectors={FILLABLE_SELECTOR: make_locator(items=[box])})

        await fill_field(context, FormField(key="Terms", input_type="checkbox"), "true", 1000)

        box.check.assert_awaited_once_with(timeout=1000)
        box.fill.assert_not_awaited()

    async def test_select_uses_option_value(self, make_locator):
        country = make_locator(1)
        context = make_locator(1, selectors={FILLABLE_SELECTOR: make_locator(items=[country])})

        await fill_field(context, FormField(key="Country", tag="select", options=["nl"]), "nl", 1000)

        country.select_option.assert_awaited_once_with("nl", timeout=1000)

    async def test_happy_path_keeps_similar_labels_apart(self, account_form, framework_config, mock_planner):
        skill = FillFormHappyPath(mock_planner, framework_config, DataGenerator(seed=1))

        result = await skill.run(account_form["page"], "body")

        assert result.filled_fields == ["Username", "Name"]
        account_form["username"].fill.assert_awaited_once()
        account_form["name"].fill.assert_awaited_once()

    async def test_validation_step_fills_named_field_only(self, account_form, framework_config, mock_planner):
        mock_planner.generate_validation_scenarios.return_value = ValidationPlan(scenarios=[
            ValidationScenario(name="Name too long", steps=[ValidationStep(target="Name", value="x" * 300)]),
        ])
        skill = TestFormValidation(mock_planner, CommandExecutor(framework_config), framework_config)

        await skill.run(account_form["page"], "body")

        account_form["name"].fill.assert_any_await("x" * 300, timeout=1000)
        account_form["username"].fill.assert_not_awaited()

    async def test_undiscovered_target_uses_executor_lookup(self, form, framework_config, mock_planner):
        mock_planner.generate_validation_scenarios.return_value = ValidationPlan(scenarios=[
            ValidationScenario(name="Bad mail", steps=[ValidationStep(target="Mail", value="nope")]),
        ])
        skill = TestFormValidation(mock_planner, CommandExecutor(framework_config), framework_config)

        result = await skill.run(form["page"], "body")

        form["email"].fill.assert_awaited_once_with("nope", timeout=1000)
        assert result.observations[0].status == "completed"


@pytest.fixture
def validation_plan():
    return ValidationPlan(scenarios=[
        ValidationScenario(name="Empty submission", description="Submit with every field blank"),
        ValidationScenario(name="Invalid email format",
                           steps=[ValidationStep(target="Email", value="not-an-email")]),
        ValidationScenario(name="Happy path submission",
                           steps=[ValidationStep(target="Email", value="placeholder")]),
    ])


@pytest.mark.asyncio
class TestFormValidationSkill:
    async def test_one_observation_per_scenario(self, form, framework_config, mock_planner, validation_plan):
        mock_planner.generate_validation_scenarios.return_value = validation_plan
        skill = TestFormValidation(mock_planner, CommandExecutor(framework_config), framework_config,
                                   DataGenerator(seed=3))

        result = await skill.run(form["page"], "body")

        assert [o.scenario_name for o in result.observations] == [
            "Empty submission", "Invalid email format", "Happy path submission",
        ]
        assert all(o.status == "completed" for o in result.observations)
        assert all(o.screenshot.startswith("data:image/png;base64,") for o in result.observations)
        assert result.observations[0].note == "Submit with every field blank"
        assert form["submit"].click.await_count == 3
        form["submit"].click.assert_awaited_with(force=True, timeout=1000)

    async def test_resets_between_scenarios(self, form, framework_config, mock_planner, validation_plan):
        mock_planner.generate_validation_scenarios.return_value = validation_plan
        skill = TestFormValidation(mock_planner, CommandExecutor(framework_config), framework_config)

        await skill.run(form["page"], "body")

        assert form["page"].goto.await_count == 2
        assert form["page"].goto.await_args.args[0] == "https://example.com/agents/new"

    async def test_happy_path_gets_generated_values(self, form, framework_config, mock_planner, validation_plan):
        mock_planner.generate_validation_scenarios.return_value = validation_plan
        skill = TestFormValidation(mock_planner, CommandExecutor(framework_config), framework_config)

        await skill.run(form["page"], "body")

        happy = validation_plan.scenarios[2]
        assert [s.target for s in happy.steps] == ["First name", "Email"]
        assert "@" in happy.steps[1].value
        form["email"].fill.assert_any_await("not-an-email", timeout=1000)

    async def test_reset_failure_is_recorded(self, form, framework_config, mock_planner, validation_plan):
        mock_planner.generate_validation_scenarios.return_value = validation_plan
        form["page"].goto.side_effect = Exception("net::ERR_CONNECTION_RESET")
        skill = TestFormValidation(mock_planner, CommandExecutor(framework_config), framework_config)

        result = await skill.run(form["page"], "body")

        assert [o.status for o in result.observations] == ["completed", "failed", "failed"]
        assert result.observations[1].error.startswith("Could not reset to https://example.com/agents/new")

    async def test_missing_submit_button(self, form, framework_config, mock_planner, validation_plan):
        mock_planner.generate_validation_scenarios.return_value = validation_plan
        form["submit"].is_visible.return_value = False
        skill = TestFormValidation(mock_planner, CommandExecutor(framework_config), framework_config)

        result = await skill.run(form["page"], "body")

        assert all(o.status == "failed" for o in result.observations)
        assert result.observations[0].error == "Could not find submit button."

    async def test_modal_left_open_is_still_observed(self, form, framework_config, mock_planner, validation_plan):
        mock_planner.generate_validation_scenarios.return_value = validation_plan
        form["context"].wait_for.side_effect = Exception("Timeout")
        skill = TestFormValidation(mock_planner, CommandExecutor(framework_config), framework_config)

        result = await skill.run(form["page"], DIALOG)

        assert all(o.status == "completed" for o in result.observations)

    async def test_rerun_gives_same_number_of_observations(
        self, form, framework_config, mock_planner, validation_plan,
    ):
        mock_planner.generate_validation_scenarios.side_effect = lambda fields: validation_plan.model_copy(deep=True)
        skill = TestFormValidation(mock_planner, CommandExecutor(framework_config), framework_config)

        first = await skill.run(form["page"], "body")
        second = await skill.run(form["page"], "body")

        assert len(first.observations) == len(second.observations) == 3

    async def test_no_fields(self, make_page, make_locator, framework_config, mock_planner):
        page = make_page(selectors={"body": make_locator(1)})
        skill = TestFormValidation(mock_planner, CommandExecutor(framework_config), framework_config)

        with pytest.raises(QAError, match="no usable form fields"):
            await skill.run(page, "body")


class TestSkillRegistry:
    def test_lookup_is_case_insensitive(self, framework_config, mock_planner):
        registry = default_registry(mock_planner, CommandExecutor(framework_config), framework_config)

        assert isinstance(registry.get("fill_form_happy_path"), FillFormHappyPath)
        assert isinstance(registry.get("TEST_FORM_VALIDATION"), TestFormValidation)
        assert registry.names == ["FILL_FORM_HAPPY_PATH", "TEST_FORM_VALIDATION"]

    def test_unknown_skill(self):
        with pytest.raises(UnknownSkill) as exc_info:
            SkillRegistry().get("MAGIC")

        assert exc_info.value.skill == "MAGIC"
