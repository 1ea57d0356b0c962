from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from ferro_automation import lazy
from ferro_automation.errors import ModuleError
from ferro_automation.modules import cloudformation as cf_module
from ferro_automation.modules.cloudformation import (
    CloudFormationModule,
    StackWaitError,
    StackWaiter,
    Template,
)
from ferro_automation.types import Context
from ferro_automation.values import to_value


def client_error(message: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": "ValidationError", "Message": message}}, operation)


class FakeClient:
    """Scripted CloudFormation client: ``describes`` holds one entry per call."""

    def __init__(self, describes, *, create_error=None, update_error=None):
        self.describes = list(describes)
        self.create_error = create_error
        self.update_error = update_error
        self.calls: list[tuple[str, dict]] = []

    def describe_stacks(self, **kwargs):
        self.calls.append(("describe_stacks", kwargs))
        item = self.describes.pop(0)
        if isinstance(item, Exception):
            raise item
        return {"Stacks": [item]}

    def create_stack(self, **kwargs):
        self.calls.append(("create_stack", kwargs))
        if self.create_error:
            raise self.create_error
        return {"StackId": "arn:stack"}

    def update_stack(self, **kwargs):
        self.calls.append(("update_stack", kwargs))
        if self.update_error:
            raise self.update_error
        return {"StackId": "arn:stack"}


NOT_FOUND = client_error("Stack with id demo-stack does not exist", "DescribeStacks")
OUTPUTS = [{"OutputKey": "SecurityGroup", "OutputValue": "sg-1"}]


def make_module(client, **kwargs) -> CloudFormationModule:
    return CloudFormationModule(
        lazy.interpolate("{}-stack", lazy.var("env")),
        Template(body="Resources: {}"),
        poll_interval=0,
        client=client,
        **kwargs,
    )


def test_creates_missing_stack_and_returns_outputs() -> None:
    client = FakeClient(
        [
            NOT_FOUND,
            {"StackStatus": "CREATE_IN_PROGRESS"},
            {"StackStatus": "CREATE_COMPLETE", "Outputs": OUTPUTS},
        ]
    )
    module = make_module(client, parameters={"Owner": lazy.var("owner")})
    response = module.apply(Context(vars={"env": "demo", "owner": "ops"}))

    assert response.changed is True
    assert to_value(response.output) == {"outputs": {"SecurityGroup": "sg-1"}}
    name, create_kwargs = client.calls[1]
    assert name == "create_stack"
    assert create_kwargs["StackName"] == "demo-stack"
    assert create_kwargs["TemplateBody"] == "Resources: {}"
    assert create_kwargs["Parameters"] == [{"ParameterKey": "Owner", "ParameterValue": "ops"}]
    assert "CAPABILITY_NAMED_IAM" in create_kwargs["Capabilities"]


def test_update_with_no_changes_is_unchanged() -> None:
    client = FakeClient(
        [{"StackStatus": "CREATE_COMPLETE"}, {"StackStatus": "CREATE_COMPLETE", "Outputs": OUTPUTS}],
        update_error=client_error("No updates are to be performed.", "UpdateStack"),
    )
    response = make_module(client).apply(Context(vars={"env": "demo"}))

    assert response.changed is False
    assert response.output.outputs == {"SecurityGroup": "sg-1"}


def test_update_waits_for_completion() -> None:
    client = FakeClient(
        [
            {"StackStatus": "CREATE_COMPLETE"},
            {"StackStatus": "UPDATE_IN_PROGRESS"},
            {"StackStatus": "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS"},
            {"StackStatus": "UPDATE_COMPLETE"},
        ]
    )
    response = make_module(client).apply(Context(vars={"env": "demo"}))

    assert response.changed is True
    assert response.output is None


def test_failed_update_reports_change() -> None:
    client = FakeClient(
        [{"StackStatus": "CREATE_COMPLETE"}, {"StackStatus": "UPDATE_ROLLBACK_COMPLETE"}]
    )
    with pytest.raises(ModuleError) as excinfo:
        make_module(client).apply(Context(vars={"env": "demo"}))

    assert excinfo.value.changed is True
    assert "UPDATE_ROLLBACK_COMPLETE" in excinfo.value.description


def test_create_rejection_reports_change() -> None:
    client = FakeClient([NOT_FOUND], create_error=client_error("Template format error", "CreateStack"))
    with pytest.raises(ModuleError) as excinfo:
        make_module(client).apply(Context(vars={"env": "demo"}))
    assert excinfo.value.changed is True


def test_describe_failure_is_unchanged() -> None:
    client = FakeClient([client_error("Access denied", "DescribeStacks")])
    with pytest.raises(ModuleError) as excinfo:
        make_module(client).apply(Context(vars={"env": "demo"}))
    assert excinfo.value.changed is False
    assert "Access denied" in excinfo.value.description


def test_waiter_fails_fast_on_unrecognised_status() -> None:
    statuses = iter([{"StackStatus": "CREATE_IN_PROGRESS"}, {"StackStatus": "IMPORT_COMPLETE"}])
    waiter = StackWaiter(
        lambda name: next(statuses),
        success="CREATE_COMPLETE",
        failures=cf_module.CREATE_FAILURES,
        sleep=lambda _: None,
    )
    with pytest.raises(StackWaitError) as excinfo:
        waiter.wait("demo")
    assert excinfo.value.status == "IMPORT_COMPLETE"


def test_waiter_is_bounded() -> None:
    sleeps: list[float] = []
    waiter = StackWaiter(
        lambda name: {"StackStatus": "CREATE_IN_PROGRESS"},
        success="CREATE_COMPLETE",
        failures=cf_module.CREATE_FAILURES,
        interval=2.0,
        max_polls=3,
        sleep=sleeps.append,
    )
    with pytest.raises(StackWaitError, match="after 3 polls"):
        waiter.wait("demo")
    assert sleeps == [2.0, 2.0]


def test_client_uses_boto3(monkeypatch) -> None:
    created = {}

    class FakeBoto3:
        def client(self, name, **kwargs):
            created["name"] = name
            created.update(kwargs)
            return FakeClient([])

    monkeypatch.setattr(cf_module, "boto3", FakeBoto3())
    module = CloudFormationModule("demo", Template(body="{}"), region="eu-west-1")
    assert isinstance(module.client, FakeClient)
    assert created == {"name": "cloudformation", "region_name": "eu-west-1"}


def test_from_spec_reads_template_relative_to_playbook(tmp_path: Path) -> None:
    (tmp_path / "stack.yml").write_text("Resources: {}\n")
    module = CloudFormationModule.from_spec(
        {
            "stack_name": {"var": "name"},
            "template_file": "stack.yml",
            "_playbook_dir": str(tmp_path),
            "max_polls": 10,
        }
    )
    assert module.template.body == "Resources: {}\n"
    assert module.max_polls == 10


def test_from_spec_template_url_is_lazy() -> None:
    module = CloudFormationModule.from_spec(
        {"stack_name": "demo", "template_url": {"state": "upload", "path": "url"}}
    )
    ctx = Context(state={"upload": {"url": "https://example.invalid/t.yml"}})
    assert module.template.as_params(ctx) == {"TemplateURL": "https://example.invalid/t.yml"}


def test_from_spec_requires_one_template() -> None:
    with pytest.raises(ValueError):
        CloudFormationModule.from_spec({"stack_name": "demo"})
    with pytest.raises(ValueError):
        CloudFormationModule.from_spec(
            {"stack_name": "demo", "template_body": "{}", "template_url": "https://x"}
        )
