import asyncio
import json
import logging
import os

import pytest

from common.errors import OperationCancelled
from connectors.process_interface import CancellationToken, ProcessResult
from lambda_emulator.install_manager import InstallOutcome
from lambda_emulator.launch_settings import LaunchSettingsOutcome, LaunchSettingsPatcher
from lambda_emulator.lifecycle import LambdaLifecycleHook
from orchestrator.graph import ResourceGraph

INFO = "lambda-test-tool info --format json"


def probe(project_path, name):
    return f"msbuild {project_path} -nologo -v:q -getProperty:{name}"


def no_sdk_check(logger):
    return None


@pytest.fixture
def tool_root(tmp_path):
    """Fake package layout: install path three levels below the content root."""
    root = tmp_path / "store"
    install_path = root / "tools" / "net8.0" / "any"
    install_path.mkdir(parents=True)
    runtime_support = root / "content" / "Amazon.Lambda.RuntimeSupport" / "net8.0"
    runtime_support.mkdir(parents=True)
    (runtime_support / "Amazon.Lambda.RuntimeSupport.dll").write_bytes(b"")
    return root


def lambda_project(tmp_path, name, handler=None, wrapper=False):
    project_dir = tmp_path / name
    project_dir.mkdir()
    project_path = str(project_dir / f"{name}.csproj")
    annotations = [{"kind": "project-metadata", "project_path": project_path}]
    if handler is not None:
        annotations.append({"kind": "lambda-function", "handler": handler})
    if wrapper:
        annotations.append({"kind": "lambda-project-metadata", "project_path": project_path})
    return project_path, {"type": "lambda-project", "name": name, "annotations": annotations}


def emulator(**policy):
    return {"type": "lambda-emulator", "name": "LambdaServiceEmulator",
            "annotations": [{"kind": "lambda-emulator", **policy}]}


def make_hook(service, settings, logger, tmp_path):
    patcher = LaunchSettingsPatcher(settings, logger, home=str(tmp_path), windows=False)
    return LambdaLifecycleHook(service, settings, logger, validate_sdk_config=no_sdk_check, patcher=patcher)


def test_without_emulator_nothing_runs_or_is_written(tmp_path, fake_service, settings, logger, caplog):
    project_path, resource = lambda_project(tmp_path, "Functions", handler="Functions::Functions.Handler::Invoke")
    graph = ResourceGraph.load({"resources": [resource]})
    hook = make_hook(fake_service, settings, logger, tmp_path)

    with caplog.at_level(logging.DEBUG, logger=logger.name):
        report = asyncio.run(hook.before_start(graph))

    assert not report.emulator_found
    assert fake_service.calls == [] and fake_service.builds == []
    assert not os.path.exists(os.path.join(tmp_path, "Functions", "Properties"))
    assert [r.levelno for r in caplog.records if r.name == logger.name] == [logging.DEBUG]
    assert "no Lambda emulator resource was found" in caplog.text


def test_class_library_project_gets_a_launch_profile(tmp_path, tool_root, make_service, info_result, settings, logger):
    project_path, resource = lambda_project(tmp_path, "Functions", handler="Functions::Functions.Handler::Invoke")
    service = make_service({
        INFO: info_result("0.0.2-preview", str(tool_root / "tools" / "net8.0" / "any")),
        probe(project_path, "TargetFramework"): ProcessResult(0, "net8.0"),
        probe(project_path, "AssemblyName"): ProcessResult(0, "Functions"),
    })
    graph = ResourceGraph.load({"resources": [emulator(), resource]})
    report = asyncio.run(make_hook(service, settings, logger, tmp_path).before_start(graph))

    assert report.install_outcome == InstallOutcome.ALREADY_INSTALLED
    assert report.launch_settings == {"Functions": LaunchSettingsOutcome.UPDATED}
    with open(tmp_path / "Functions" / "Properties" / "launchSettings.json") as f:
        profile = json.load(f)["profiles"]["Aspire_Functions"]
    assert "$HOME/store/content/Amazon.Lambda.RuntimeSupport/net8.0/Amazon.Lambda.RuntimeSupport.dll" in profile["commandLineArgs"]
    assert profile["commandLineArgs"].endswith("Functions::Functions.Handler::Invoke")


def test_handler_without_separator_is_not_patched(tmp_path, tool_root, make_service, info_result, settings, logger):
    project_path, resource = lambda_project(tmp_path, "Executable", handler="Executable")
    service = make_service({INFO: info_result("0.0.2-preview", str(tool_root / "tools" / "net8.0" / "any"))})
    graph = ResourceGraph.load({"resources": [emulator(), resource]})
    report = asyncio.run(make_hook(service, settings, logger, tmp_path).before_start(graph))

    assert report.launch_settings == {}
    assert not any("msbuild" in c for c in service.commands())
    assert not (tmp_path / "Executable" / "Properties").exists()


def test_wrapper_projects_are_built_in_their_directory(tmp_path, make_service, info_result, settings, logger):
    project_path, resource = lambda_project(tmp_path, "Wrapper", handler="Wrapper", wrapper=True)
    service = make_service({INFO: info_result("0.0.2-preview", "/x/y/z")})
    graph = ResourceGraph.load({"resources": [emulator(), resource]})
    report = asyncio.run(make_hook(service, settings, logger, tmp_path).before_start(graph))

    assert report.built_projects == {"Wrapper": 0}
    assert service.builds == [("dotnet", "build Wrapper.csproj", str((tmp_path / "Wrapper").resolve()))]


def test_unknown_install_path_halts_every_class_library(tmp_path, make_service, settings, logger):
    first_path, first = lambda_project(tmp_path, "First", handler="First::First.Handler::Invoke")
    _, second = lambda_project(tmp_path, "Second", handler="Second::Second.Handler::Invoke")
    service = make_service({"tool install -g Amazon.Lambda.TestTool --version 0.0.2-preview": ProcessResult(1, "offline")})
    graph = ResourceGraph.load({"resources": [emulator(), first, second]})
    report = asyncio.run(make_hook(service, settings, logger, tmp_path).before_start(graph))

    assert report.install_outcome == InstallOutcome.FAILED
    assert report.halted
    assert report.launch_settings == {} and report.skipped_projects == []
    assert not any("msbuild" in c for c in service.commands())


def test_probe_failure_skips_only_that_project(tmp_path, tool_root, make_service, info_result, settings, logger):
    broken_path, broken = lambda_project(tmp_path, "Broken", handler="Broken::Broken.Handler::Invoke")
    good_path, good = lambda_project(tmp_path, "Good", handler="Good::Good.Handler::Invoke")
    service = make_service({
        INFO: info_result("0.0.2-preview", str(tool_root / "tools" / "net8.0" / "any")),
        probe(good_path, "TargetFramework"): ProcessResult(0, "net8.0"),
        probe(good_path, "AssemblyName"): ProcessResult(0, "Good"),
    })
    graph = ResourceGraph.load({"resources": [emulator(), broken, good]})
    report = asyncio.run(make_hook(service, settings, logger, tmp_path).before_start(graph))

    assert report.skipped_projects == ["Broken"]
    assert report.launch_settings == {"Good": LaunchSettingsOutcome.UPDATED}
    assert not report.halted


def test_unreadable_launch_settings_do_not_stop_other_projects(tmp_path, tool_root, make_service, info_result, settings, logger):
    bad_path, bad = lambda_project(tmp_path, "Bad", handler="Bad::Bad.Handler::Invoke")
    good_path, good = lambda_project(tmp_path, "Good", handler="Good::Good.Handler::Invoke")
    properties = tmp_path / "Bad" / "Properties"
    properties.mkdir()
    (properties / "launchSettings.json").write_bytes(b'{"profiles": {"x": "\xff\xfe"}}')
    service = make_service({
        INFO: info_result("0.0.2-preview", str(tool_root / "tools" / "net8.0" / "any")),
        probe(bad_path, "TargetFramework"): ProcessResult(0, "net8.0"),
        probe(bad_path, "AssemblyName"): ProcessResult(0, "Bad"),
        probe(good_path, "TargetFramework"): ProcessResult(0, "net8.0"),
        probe(good_path, "AssemblyName"): ProcessResult(0, "Good"),
    })
    graph = ResourceGraph.load({"resources": [emulator(), bad, good]})
    report = asyncio.run(make_hook(service, settings, logger, tmp_path).before_start(graph))

    assert report.launch_settings == {
        "Bad": LaunchSettingsOutcome.PARSE_FAILED,
        "Good": LaunchSettingsOutcome.UPDATED,
    }
    assert (tmp_path / "Good" / "Properties" / "launchSettings.json").is_file()


def test_missing_runtime_support_skips_the_project(tmp_path, tool_root, make_service, info_result, settings, logger):
    project_path, resource = lambda_project(tmp_path, "Functions", handler="Functions::Functions.Handler::Invoke")
    service = make_service({
        INFO: info_result("0.0.2-preview", str(tool_root / "tools" / "net8.0" / "any")),
        probe(project_path, "TargetFramework"): ProcessResult(0, "net6.0"),
        probe(project_path, "AssemblyName"): ProcessResult(0, "Functions"),
    })
    graph = ResourceGraph.load({"resources": [emulator(), resource]})
    report = asyncio.run(make_hook(service, settings, logger, tmp_path).before_start(graph))

    assert report.skipped_projects == ["Functions"]
    assert not (tmp_path / "Functions" / "Properties").exists()


def test_cancellation_stops_new_commands(tmp_path, fake_service, settings, logger):
    graph = ResourceGraph.load({"resources": [emulator()]})
    token = CancellationToken()
    token.cancel()
    with pytest.raises(OperationCancelled):
        asyncio.run(make_hook(fake_service, settings, logger, tmp_path).before_start(graph, token))
    assert fake_service.calls == []


def test_disabled_auto_install_still_patches(tmp_path, tool_root, make_service, info_result, settings, logger):
    project_path, resource = lambda_project(tmp_path, "Functions", handler="Functions::Functions.Handler::Invoke")
    service = make_service({
        INFO: info_result("0.0.1-preview", str(tool_root / "tools" / "net8.0" / "any")),
        probe(project_path, "TargetFramework"): ProcessResult(0, "net8.0"),
        probe(project_path, "AssemblyName"): ProcessResult(0, "Functions"),
    })
    graph = ResourceGraph.load({"resources": [emulator(disable_auto_install=True), resource]})
    report = asyncio.run(make_hook(service, settings, logger, tmp_path).before_start(graph))

    assert report.install_outcome == InstallOutcome.SKIPPED
    assert not any(c.startswith("tool install") for c in service.commands())
    assert report.launch_settings == {"Functions": LaunchSettingsOutcome.UPDATED}
