from __future__ import annotations

import tools.plan as plan_tool
import tools.render as render_tool
from k8s import PodListError, PolicyFetchError
from reconcile import ReconcilePlan


def test_plan_reports_api_errors_without_traceback(monkeypatch, capsys) -> None:
    def _fail(namespace, name):
        raise PolicyFetchError("get policyendpoints ns/P: 500 Internal Server Error")

    monkeypatch.setattr(plan_tool, "load_plan", _fail)

    assert plan_tool.main(["ns", "P"]) == 1
    assert "[plan] failed: get policyendpoints ns/P: 500" in capsys.readouterr().err


def test_render_reports_api_errors_without_traceback(monkeypatch, capsys) -> None:
    def _fail(namespace, name):
        raise PodListError("list pods in ns: 403 Forbidden")

    monkeypatch.setattr(render_tool, "load_plan", _fail)

    assert render_tool.main(["ns", "P"]) == 1
    captured = capsys.readouterr()
    assert "[plan] failed: list pods in ns: 403 Forbidden" in captured.err
    assert captured.out == ""


def test_render_dumps_plan_as_yaml(monkeypatch, capsys) -> None:
    monkeypatch.setattr(
        render_tool,
        "load_plan",
        lambda namespace, name: ReconcilePlan(namespace=namespace, name=name, found=False),
    )

    assert render_tool.main(["ns", "P"]) == 0
    assert capsys.readouterr().out == "namespace: ns\nname: P\nfound: false\n"


def test_usage_errors() -> None:
    assert plan_tool.main([]) == 2
    assert render_tool.main(["ns"]) == 2
