import pytest

from nsvpn.ui import (
    BoolChoice,
    ConfigurationChoice,
    Input,
    InputNumericU16,
    Password,
    UiClient,
)


class Colour:
    def prompt(self):
        return "Pick a colour"

    def description(self):
        return None

    def all_descriptions(self):
        return None

    def all_names(self):
        return ["red", "green"]


class ScriptedClient(UiClient):
    def __init__(self, answers):
        self.answers = list(answers)

    def get_configuration_choice(self, conf_choice):
        return self.answers.pop(0)

    def get_bool_choice(self, bool_choice):
        return bool_choice.default

    def get_input(self, input_spec):
        value = self.answers.pop(0)
        input_spec.validate(value)
        return value

    def get_input_numeric_u16(self, input_spec):
        value = self.answers.pop(0)
        input_spec.validate(value)
        return value

    def get_password(self, password):
        return self.answers.pop(0)


def test_structural_configuration_choice():
    choice = Colour()
    spec = BoolChoice(prompt=choice.prompt(), default=False)
    assert isinstance(choice, ConfigurationChoice)
    assert not isinstance(object(), ConfigurationChoice)
    assert spec.prompt == "Pick a colour"
    assert spec.default is False


def test_input_validate_calls_validator():
    seen = []
    spec = Input(prompt="Name", validator=seen.append)
    spec.validate("abc")
    assert seen == ["abc"]


def test_input_validate_rejects():
    def reject(value):
        raise ValueError("bad value")

    spec = Input(prompt="Name", validator=reject)
    with pytest.raises(ValueError, match="bad value"):
        spec.validate("abc")


@pytest.mark.parametrize("value", [-1, 65536, 100000])
def test_numeric_out_of_range(value):
    with pytest.raises(ValueError):
        InputNumericU16(prompt="Port").validate(value)


def test_numeric_validator_sees_in_range_value():
    seen = []
    spec = InputNumericU16(prompt="Port", validator=seen.append, default=80)
    spec.validate(65535)
    assert seen == [65535]
    assert spec.default == 80


def test_ui_client_is_abstract():
    with pytest.raises(TypeError):
        UiClient()


def test_scripted_client_answers():
    client = ScriptedClient([1, "host", 443, "password"])
    assert client.get_configuration_choice(Colour()) == 1
    assert client.get_bool_choice(BoolChoice(prompt="Sure?", default=True)) is True
    assert client.get_input(Input(prompt="Host")) == "host"
    assert client.get_input_numeric_u16(InputNumericU16(prompt="Port")) == 443
    assert client.get_password(Password(prompt="Secret", confirm=False)) == "password"


def test_scripted_client_numeric_rejects():
    client = ScriptedClient([70000])
    with pytest.raises(ValueError):
        client.get_input_numeric_u16(InputNumericU16(prompt="Port"))