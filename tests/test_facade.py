"""Tests for the compatibility facade.

Covers the legacy call contract end to end: notices first, discontinued
parameters dropped, rewrites, preconditions, one call to the new API and
ContinueOnError applied only to execution failures.
"""

import logging
from datetime import timedelta

import pytest

from adtshim.lib.api import RecordingApi
from adtshim.lib.deprecation import LegacyOperationDeprecationWarning, NoticeSeverity
from adtshim.lib.errors import (
    ContractViolation,
    ExecutionFailure,
    TranslationImpossible,
    UnknownOperationError,
)
from adtshim.lib.facade import CompatibilityFacade, LegacyOperation, python_name
from adtshim.lib.params import NOT_SUPPLIED
from adtshim.lib.result import Failure, Success
from adtshim.lib.settings import ShimSettings

GUID = "{26923B43-4D38-484F-9B9E-DE460746276C}"

REPLACEMENT_NOTICE = (
    "The function [Remove-File] has been replaced by [Remove-ADTFile]. Please "
    "migrate your scripts to use the new function, as the legacy name will be "
    "removed in a future release."
)


def failing_facade(notices, catalog, replacement, exc=None):
    api = RecordingApi(failures={replacement: exc or OSError("access denied")})
    return api, CompatibilityFacade(api, catalog=catalog, notices=notices)


class TestScenarios:
    """Reference legacy calls."""

    def test_remove_file_batches_paths(self, facade, api, notices):
        facade.invoke("Remove-File", Path=["a.txt", "b.txt"], ContinueOnError=True)

        assert notices.messages == [REPLACEMENT_NOTICE]
        assert api.calls == [("Remove-ADTFile", {"Path": ["a.txt", "b.txt"]})]

    def test_remove_file_failure_is_continued(self, notices, catalog):
        api, facade = failing_facade(notices, catalog, "Remove-ADTFile")

        result = facade.invoke("Remove-File", Path=["a.txt", "b.txt"], ContinueOnError=True)

        assert result is None
        assert len(api.calls) == 1
        assert len(notices.records) == 1

    def test_execute_msi_product_code(self, facade):
        call = facade.translate("Execute-MSI", FilePath=GUID, IgnoreExitCodes="1641,3010")

        assert call.replacement == "Start-ADTMsiProcess"
        assert dict(call.parameters) == {
            "ProductCode": GUID,
            "IgnoreExitCodes": ["1641", "3010"],
        }
        assert "FilePath" not in call.parameters
        assert "Path" not in call.parameters

    def test_execute_msi_file(self, facade):
        call = facade.translate("Execute-MSI", Path="C:\\setup.msi", Action="Install")
        assert dict(call.parameters) == {"FilePath": "C:\\setup.msi", "Action": "Install"}

    def test_installation_prompt_top_most(self, facade):
        call = facade.translate("Show-InstallationPrompt", TopMost=False)

        assert dict(call.parameters) == {"NotTopMost": True}
        assert "TopMost" not in call.parameters

    def test_installation_prompt_text_switch(self, facade, api):
        call = facade.translate("Show-InstallationPrompt", TopMost="false")
        assert dict(call.parameters) == {"NotTopMost": True}

        with pytest.raises(ContractViolation):
            facade.invoke("Show-InstallationPrompt", TopMost="maybe")
        assert api.calls == []

    @pytest.mark.parametrize("wait", [1e20, "nan"])
    def test_unrepresentable_wait_never_reaches_api(self, facade, api, wait):
        with pytest.raises(ContractViolation) as exc_info:
            facade.invoke("Execute-Process", Path="a.exe", MsiExecWaitTime=wait)
        assert exc_info.value.parameter == "MsiExecWaitTime"
        assert api.calls == []

    def test_missing_file_never_reaches_api(self, facade, api, notices, tmp_path):
        missing = tmp_path / "missing.dll"

        with pytest.raises(ContractViolation) as exc_info:
            facade.invoke("Get-FileVersion", File=str(missing))

        assert api.calls == []
        assert exc_info.value.parameter == "File"
        assert exc_info.value.operation == "Get-FileVersion"
        # the replacement is announced even though the call failed
        assert len(notices.records) == 1

    def test_existing_file_is_forwarded(self, facade, tmp_path):
        target = tmp_path / "app.dll"
        target.write_bytes(b"MZ")
        facade.api.results["Get-ADTFileVersion"] = "1.2.3.4"

        assert facade.invoke("Get-FileVersion", File=str(target)) == "1.2.3.4"


class TestTranslationProperties:
    """Translation is pure, and only accepted parameters are forwarded."""

    VALID_CALLS = [
        ("Write-Log", {"Message": "Installing", "Severity": 2, "WriteHost": True}),
        ("Execute-Process", {"Path": "setup.exe", "Parameters": "/S", "NoWait": True}),
        ("Execute-ProcessAsUser", {"Path": "app.exe", "RunLevel": "LeastPrivilege",
                                   "Wait": True}),
        ("Copy-File", {"Path": "a", "Destination": "b", "UseRobocopy": True}),
        ("Show-InstallationWelcome", {"CloseApps": "iexplore,winword=Word",
                                      "MinimizeWindows": False, "CloseAppsCountdown": 60}),
        ("Show-InstallationProgress", {"StatusMessage": "Wait", "Quiet": True}),
        ("Get-InstalledApplication", {"Name": "Java*", "WildCard": True}),
        ("Remove-MSIApplications", {"Name": "Java", "Exact": True, "LogName": "java"}),
        ("Set-RegistryKey", {"Key": "HKLM:\\SOFTWARE\\App", "Name": "Ver", "Type": "DWord"}),
        ("Send-Keys", {"WindowTitle": "Setup", "Keys": "{ENTER}", "WaitSeconds": 2}),
        ("Resolve-Error", {"ErrorRecord": "boom", "GetErrorInvocation": False}),
        ("New-Shortcut", {"Path": "C:\\a.lnk", "IconLocation": "a.ico", "IconIndex": 1}),
        ("Stop-ServiceAndDependencies", {"Name": "wuauserv", "ComputerName": "pc1"}),
    ]

    @pytest.mark.parametrize("operation,params", VALID_CALLS)
    def test_repeated_translation_is_identical(self, facade, operation, params):
        first = facade.translate(operation, params)
        second = facade.translate(operation, params)
        assert dict(first.parameters) == dict(second.parameters)

    @pytest.mark.parametrize("operation,params", VALID_CALLS)
    def test_forwarded_names_are_accepted(self, facade, catalog, operation, params):
        call = facade.translate(operation, params)
        assert set(call.parameters) <= catalog[operation].accepts

    def test_caller_mapping_is_not_mutated(self, facade):
        params = {"Path": ["a.txt"], "ContinueOnError": True}
        facade.invoke("Remove-File", params)
        assert params == {"Path": ["a.txt"], "ContinueOnError": True}

    def test_not_supplied_is_absent(self, facade):
        call = facade.translate("Show-InstallationPrompt", TopMost=NOT_SUPPLIED, Title="x")
        assert dict(call.parameters) == {"Title": "x"}

    def test_rewrites(self, facade):
        call = facade.translate(
            "New-ZipFile",
            DestinationArchiveDirectoryPath="C:\\Out",
            DestinationArchiveFileName="logs.zip",
            SourceDirectoryPath="C:\\Logs",
            OverWriteArchive=True,
        )
        assert dict(call.parameters) == {
            "DestinationPath": "C:\\Out\\logs.zip",
            "LiteralPath": "C:\\Logs",
            "Force": True,
        }

        call = facade.translate("Test-IsMutexAvailable", MutexName="Global\\_MSIExecute",
                                MutexWaitTimeInMilliseconds=500)
        assert dict(call.parameters) == {
            "Name": "Global\\_MSIExecute",
            "MutexWaitTime": timedelta(milliseconds=500),
        }

        call = facade.translate("Execute-ProcessAsUser", Path="a.exe",
                                RunLevel="HighestAvailable", Wait=False)
        assert dict(call.parameters) == {
            "FilePath": "a.exe",
            "UseHighestAvailableToken": True,
            "NoWait": True,
        }


class TestDiscontinuedParameters:
    """Each discontinued parameter adds exactly one notice and is dropped."""

    @pytest.mark.parametrize("value", [True, False, "anything", 0])
    def test_notice_and_drop(self, facade, api, notices, value):
        facade.invoke("Execute-Process", Path="setup.exe", ExitOnProcessFailure=value)

        assert len(notices.records) == 2
        assert notices.messages[1] == (
            "The parameter [-ExitOnProcessFailure] of [Execute-Process] is "
            "discontinued and no longer has any effect."
        )
        _, forwarded = api.last_call
        assert "ExitOnProcessFailure" not in forwarded

    def test_several_discontinued(self, facade, notices):
        call = facade.translate("Write-Log", Text="x", WriteHost=True, MaxLogHistory=5)
        assert len(call.notices) == 3
        assert dict(call.parameters) == {"Message": "x"}
        assert len(notices.records) == 3

    def test_notice_severity_and_source(self, facade, notices):
        facade.translate("Close-InstallationProgress", WaitingTime=5)
        assert [(sev, src) for _, sev, src in notices.records] == [
            (NoticeSeverity.WARNING, "Close-InstallationProgress"),
            (NoticeSeverity.WARNING, "Close-InstallationProgress"),
        ]


class TestNoticeSuppression:
    """One flag gates both notice kinds."""

    def test_no_notices_when_suppressed(self, quiet_facade, api, notices):
        call = quiet_facade.translate("Execute-Process", Path="a.exe", ExitOnProcessFailure=True)

        assert notices.records == []
        assert call.notices == ()
        # still dropped
        assert "ExitOnProcessFailure" not in call.parameters

    def test_flag_reaches_the_sink(self, api, catalog):
        class SpySink:
            def __init__(self):
                self.flags = []

            def emit(self, message, *, severity, source, suppress=False):
                self.flags.append(suppress)

        sink = SpySink()
        settings = ShimSettings(suppress_deprecation_notices=True)
        facade = CompatibilityFacade(api, catalog=catalog, settings=settings, notices=sink)
        facade.translate("Send-Keys", Keys="x", GetAllWindowTitles=True)

        assert sink.flags == [True, True]

    def test_flag_is_read_once(self, api, notices, catalog):
        settings = ShimSettings()
        facade = CompatibilityFacade(api, catalog=catalog, settings=settings, notices=notices)
        assert facade.suppress_notices is False
        with pytest.raises(AttributeError):
            facade.suppress_notices = True

    def test_default_sink_logs(self, api, catalog, caplog):
        facade = CompatibilityFacade(api, catalog=catalog)
        with caplog.at_level(logging.WARNING, logger="adtshim.deprecation"):
            facade.translate("Remove-File", Path="a.txt")

        records = [r for r in caplog.records if r.name == "adtshim.deprecation"]
        assert [r.getMessage() for r in records] == [REPLACEMENT_NOTICE]
        assert records[0].source == "Remove-File"

    def test_warnings_category(self, api, catalog):
        facade = CompatibilityFacade(
            api, catalog=catalog, settings=ShimSettings(warn_on_notice=True)
        )
        with pytest.warns(LegacyOperationDeprecationWarning, match="Remove-ADTFile"):
            facade.translate("Remove-File", Path="a.txt")

    def test_warning_points_at_calling_line(self, api, catalog):
        facade = CompatibilityFacade(
            api, catalog=catalog, settings=ShimSettings(warn_on_notice=True)
        )
        with pytest.warns(LegacyOperationDeprecationWarning) as record:
            facade.remove_file(Path="a.txt")
            facade.pipeline("Remove-File", ["b.txt"])

        assert len(record) == 2
        assert {warning.filename for warning in record} == {__file__}


class TestErrorModes:
    """ContinueOnError applies to execution failures only."""

    def test_continue_on_error_suppresses(self, notices, catalog, caplog):
        api, facade = failing_facade(notices, catalog, "Start-ADTProcess")

        with caplog.at_level(logging.WARNING, logger="adtshim.lib.facade"):
            result = facade.invoke("Execute-Process", Path="a.exe", ContinueOnError=True)

        assert result is None
        assert "continuing because ContinueOnError is set" in caplog.text

    def test_failure_raises_with_legacy_name(self, notices, catalog):
        cause = OSError("access denied")
        api, facade = failing_facade(notices, catalog, "Start-ADTProcess", cause)

        with pytest.raises(ExecutionFailure) as exc_info:
            facade.invoke("Execute-Process", Path="a.exe", ContinueOnError=False)

        err = exc_info.value
        assert err.operation == "Execute-Process"
        assert err.replacement == "Start-ADTProcess"
        assert err.kind == "OSError"
        assert err.__cause__ is cause
        assert "[Execute-Process]" in str(err)
        assert err.call.parameters["FilePath"] == "a.exe"

    def test_rule_default_applies(self, notices, catalog):
        # Remove-File continues on error unless told otherwise
        api, facade = failing_facade(notices, catalog, "Remove-ADTFile")
        assert facade.invoke("Remove-File", Path="a.txt") is None

        with pytest.raises(ExecutionFailure):
            facade.invoke("Remove-File", Path="a.txt", ContinueOnError=False)

    def test_text_continue_on_error_false_raises(self, notices, catalog):
        api, facade = failing_facade(notices, catalog, "Remove-ADTFile")
        with pytest.raises(ExecutionFailure):
            facade.invoke("Remove-File", Path="a.txt", ContinueOnError="false")

    def test_unreadable_continue_on_error(self, facade, api):
        with pytest.raises(ContractViolation) as exc_info:
            facade.invoke("Remove-File", Path="a.txt", ContinueOnError="sometimes")
        assert exc_info.value.parameter == "ContinueOnError"
        assert api.calls == []

    def test_contract_violation_ignores_continue_on_error(self, facade, api):
        with pytest.raises(ContractViolation):
            facade.invoke("New-Folder", ContinueOnError=True)
        assert api.calls == []

    def test_translation_failure_ignores_continue_on_error(self, facade, api):
        with pytest.raises(TranslationImpossible):
            facade.invoke("Remove-File", Path="a", LiteralPath="b", ContinueOnError=True)
        assert api.calls == []

    def test_continue_on_error_is_not_forwarded(self, facade, api):
        facade.invoke("Remove-Folder", Path="C:\\Temp\\x", ContinueOnError=False)
        assert api.calls == [("Remove-ADTFolder", {"LiteralPath": "C:\\Temp\\x"})]

    def test_try_invoke_returns_result(self, notices, catalog):
        api, facade = failing_facade(notices, catalog, "Remove-ADTFile")

        result = facade.try_invoke("Remove-File", Path="a.txt")

        assert isinstance(result, Failure)
        assert result.ok is False
        assert result.kind == "OSError"
        assert result.operation == "Remove-File"
        assert result.unwrap_or("fallback") == "fallback"
        with pytest.raises(ExecutionFailure):
            result.unwrap()

    def test_try_invoke_success(self, facade, api):
        api.results["Get-ADTPendingReboot"] = {"IsSystemRebootPending": False}
        result = facade.try_invoke("Get-PendingReboot")
        assert isinstance(result, Success)
        assert result.unwrap() == {"IsSystemRebootPending": False}


class TestReturnValues:
    """Results are handed back only for pass-through operations."""

    def test_passthru_flag(self, facade, api):
        api.results["Start-ADTProcess"] = {"ExitCode": 0}

        assert facade.invoke("Execute-Process", Path="a.exe") is None
        assert facade.invoke("Execute-Process", Path="a.exe", PassThru=True) == {"ExitCode": 0}
        # the new API takes PassThru as well
        assert api.last_call == ("Start-ADTProcess", {"FilePath": "a.exe", "PassThru": True})

    def test_always_returns(self, facade, api):
        api.results["Show-ADTDialogBox"] = "OK"
        assert facade.invoke("Show-DialogBox", Text="Continue?") == "OK"

    def test_never_returns(self, facade, api):
        api.results["New-ADTFolder"] = "C:\\x"
        assert facade.invoke("New-Folder", Path="C:\\x") is None

    def test_text_passthru_false(self, facade, api):
        api.results["Start-ADTProcess"] = {"ExitCode": 0}
        assert facade.invoke("Execute-Process", Path="a.exe", PassThru="false") is None
        assert facade.invoke("Execute-Process", Path="a.exe", PassThru="yes") == {"ExitCode": 0}
        assert api.last_call == ("Start-ADTProcess", {"FilePath": "a.exe", "PassThru": True})


class TestPipeline:
    """Piped input is batched into a single call."""

    @pytest.mark.parametrize("count", [1, 2, 25])
    def test_single_batched_call(self, facade, api, count):
        paths = [f"file{i}.txt" for i in range(count)]

        facade.pipeline("Remove-File", paths)

        assert len(api.calls) == 1
        assert api.calls[0] == ("Remove-ADTFile", {"Path": paths})

    def test_empty_items_are_skipped(self, facade, api):
        facade.pipeline("Remove-File", ["a.txt", None, "", "  ", [], "b.txt"])
        assert api.calls == [("Remove-ADTFile", {"Path": ["a.txt", "b.txt"]})]

    def test_accepts_generators(self, facade, api):
        facade.pipeline("Remove-File", (p for p in ["a.txt", "b.txt"]), Recurse=True)
        assert api.calls == [("Remove-ADTFile", {"Path": ["a.txt", "b.txt"], "Recurse": True})]

    def test_single_string_is_one_item(self, facade, api):
        facade.pipeline("Remove-File", "a.txt")
        assert api.calls == [("Remove-ADTFile", {"Path": ["a.txt"]})]

    def test_single_object_is_one_item(self, facade, api):
        error = ValueError("a")
        facade.pipeline("Resolve-Error", error)
        _, params = api.last_call
        assert params == {"ErrorRecord": [error]}

    def test_one_notice_per_invocation(self, facade, notices):
        facade.pipeline("Remove-File", ["a", "b", "c"])
        assert len(notices.records) == 1

    def test_no_input_is_contract_violation(self, facade, api):
        with pytest.raises(ContractViolation) as exc_info:
            facade.pipeline("Remove-File", [None, ""])
        assert exc_info.value.parameter == "Path"
        assert api.calls == []

    def test_no_input_with_explicit_parameter(self, facade, api):
        facade.pipeline("Remove-File", [], Path="a.txt")
        assert api.calls == [("Remove-ADTFile", {"Path": "a.txt"})]

    def test_explicit_and_piped_is_impossible(self, facade):
        with pytest.raises(TranslationImpossible):
            facade.pipeline("Remove-File", ["a.txt"], Path="b.txt")

    def test_alias_counts_as_explicit(self, facade):
        with pytest.raises(TranslationImpossible):
            facade.pipeline("Write-Log", ["line"], Message="other")

    def test_operation_without_pipeline(self, facade):
        with pytest.raises(ContractViolation, match="does not accept pipeline input"):
            facade.pipeline("New-Folder", ["C:\\x"])

    def test_error_records(self, facade, api):
        errors = [ValueError("a"), KeyError("b")]
        facade.pipeline("Resolve-Error", errors, GetErrorInvocation=False)
        _, params = api.last_call
        assert params == {"ErrorRecord": errors, "ExcludeErrorInvocation": True}


class TestInputValidation:
    """Contract and translation errors raised before the new API."""

    def test_unknown_operation(self, facade, notices):
        with pytest.raises(UnknownOperationError) as exc_info:
            facade.invoke("Do-Magic")
        assert isinstance(exc_info.value, LookupError)
        assert "adt-shim list" in str(exc_info.value)
        assert notices.records == []

    def test_unknown_parameter(self, facade, notices):
        with pytest.raises(ContractViolation) as exc_info:
            facade.translate("New-Folder", Folder="x")
        assert exc_info.value.parameter == "Folder"
        assert len(notices.records) == 1

    def test_alias_and_canonical(self, facade):
        with pytest.raises(TranslationImpossible):
            facade.translate("Execute-MSI", Path="a.msi", FilePath="b.msi")

    def test_mapping_and_keyword_clash(self, facade):
        with pytest.raises(TranslationImpossible):
            facade.translate("New-Folder", {"Path": "a"}, Path="b")

    def test_mutually_exclusive_switches(self, facade):
        with pytest.raises(TranslationImpossible):
            facade.translate("Get-InstalledApplication", Name="x", Exact=True, WildCard=True)

    def test_unsupported_parameter(self, facade, api):
        with pytest.raises(TranslationImpossible) as exc_info:
            facade.invoke("Remove-MSIApplications", Name="Java", FilterApplication=["x"])
        assert exc_info.value.parameters == ("FilterApplication",)
        assert api.calls == []

    def test_invalid_choice(self, facade):
        with pytest.raises(ContractViolation) as exc_info:
            facade.translate("Execute-MSI", Path="a.msi", Action="Destroy")
        assert exc_info.value.parameter == "Action"

    def test_invalid_pattern(self, facade):
        with pytest.raises(ContractViolation):
            facade.translate("Test-MSUpdates", KBNumber="latest")

    def test_required_parameter(self, facade):
        with pytest.raises(ContractViolation, match="Mandatory parameter 'Path'"):
            facade.translate("Execute-Process", WindowStyle="Hidden")


class TestOperationAccess:
    """Legacy operations as attributes and items."""

    @pytest.mark.parametrize(
        "legacy,expected",
        [
            ("Remove-File", "remove_file"),
            ("Execute-MSI", "execute_msi"),
            ("Remove-MSIApplications", "remove_msi_applications"),
            ("Test-IsMutexAvailable", "test_is_mutex_available"),
            ("Install-MSUpdates", "install_ms_updates"),
            ("Register-DLL", "register_dll"),
        ],
    )
    def test_python_name(self, legacy, expected):
        assert python_name(legacy) == expected

    def test_attribute_access(self, facade, api):
        operation = facade.new_folder
        assert isinstance(operation, LegacyOperation)
        assert operation.name == "New-Folder"
        assert operation.replacement == "New-ADTFolder"
        assert repr(operation) == "<LegacyOperation New-Folder -> New-ADTFolder>"

        operation(Path="C:\\x")
        assert api.calls == [("New-ADTFolder", {"LiteralPath": "C:\\x"})]

    def test_item_access_and_pipe(self, facade, api):
        facade["remove-file"].pipe(["a.txt"])
        assert api.calls == [("Remove-ADTFile", {"Path": ["a.txt"]})]

    def test_operation_translate(self, facade):
        call = facade.show_installation_prompt.translate(TopMost=False)
        assert dict(call.parameters) == {"NotTopMost": True}

    def test_unknown_attribute(self, facade):
        with pytest.raises(AttributeError):
            facade.launch_rockets
        with pytest.raises(AttributeError):
            facade._hidden

    def test_operations_list(self, facade, catalog):
        assert facade.operations() == catalog.names()


class TestFacadeConstruction:
    """Catalog and settings wiring."""

    def test_catalog_from_settings(self, tmp_path, api, notices):
        path = tmp_path / "catalog.yaml"
        path.write_text(
            "operations:\n"
            "  Update-Desktop:\n"
            "    replacement: Update-ADTDesktop\n",
            encoding="utf-8",
        )
        facade = CompatibilityFacade(
            api, settings=ShimSettings(catalog_path=path), notices=notices
        )
        assert facade.operations() == ["Update-Desktop"]

    def test_default_catalog(self, api):
        facade = CompatibilityFacade(api)
        assert "Execute-MSI" in facade.operations()
