import os

import pytest

from hstp.commands import (
    CpuOptions, DiskOptions, GpuOptions, NetworkOptions, RamOptions, TestKind, build_command,
    default_options,
)
from hstp.errors import MissingDependency, ValidationError

TOOLS = {
    TestKind.CPU: "stress-ng",
    TestKind.RAM: "stress-ng",
    TestKind.GPU: "glmark2",
    TestKind.DISK: "fio",
    TestKind.NET: "iperf3",
}

VALID = {
    TestKind.CPU: CpuOptions(4, 10),
    TestKind.RAM: RamOptions(2, "1G", 30),
    TestKind.GPU: GpuOptions(),
    TestKind.DISK: DiskOptions("2G", 45, "/tmp/fio.bin"),
    TestKind.NET: NetworkOptions("10.0.0.5"),
}


def test_cpu(resolver_all):
    inv = build_command(TestKind.CPU, CpuOptions(workers=4, duration=10), resolver=resolver_all)
    assert inv.argv == ["stress-ng", "--cpu", "4", "--timeout", "10s"]
    assert inv.command_line == "stress-ng --cpu 4 --timeout 10s"
    assert inv.expected_duration == 10
    assert inv.kind is TestKind.CPU


def test_cpu_values_are_clamped(resolver_all):
    inv = build_command(TestKind.CPU, CpuOptions(workers=0, duration=1), resolver=resolver_all)
    assert inv.argv == ["stress-ng", "--cpu", "1", "--timeout", "5s"]
    assert inv.expected_duration == 5


def test_ram(resolver_all):
    inv = build_command(TestKind.RAM, RamOptions(3, "2G", 120), resolver=resolver_all)
    assert inv.argv == ["stress-ng", "--vm", "3", "--vm-bytes", "2G", "--timeout", "120s"]
    assert inv.expected_duration == 120


def test_ram_blank_bytes_defaults_to_512m(resolver_all):
    inv = build_command(TestKind.RAM, RamOptions(1, "   ", 60), resolver=resolver_all)
    assert inv.args[3] == "512M"


@pytest.mark.parametrize("size", ["lots", "1.5G", "G", "-1G", "12 M"])
def test_ram_rejects_malformed_size(resolver_all, size):
    with pytest.raises(ValidationError):
        build_command(TestKind.RAM, RamOptions(1, size, 60), resolver=resolver_all)


@pytest.mark.parametrize("size", ["512M", "1g", "4KiB", "2GB", "1024", "80%"])
def test_accepted_sizes(resolver_all, size):
    inv = build_command(TestKind.RAM, RamOptions(1, size, 60), resolver=resolver_all)
    assert inv.args[3] == size


def test_gpu_has_no_arguments_or_duration(resolver_all):
    inv = build_command(TestKind.GPU, GpuOptions(), resolver=resolver_all)
    assert inv.argv == ["glmark2"]
    assert inv.expected_duration is None


def test_disk_on_linux(resolver_all):
    inv = build_command(TestKind.DISK, DiskOptions("2G", 45, "/tmp/fio.bin"),
                        resolver=resolver_all, system="Linux")
    assert inv.argv == [
        "fio", "--name=randrw", "--rw=randrw", "--size=2G", "--runtime=45",
        "--time_based=1", "--filename=/tmp/fio.bin", "--ioengine=libaio", "--direct=1",
    ]
    assert inv.expected_duration == 45


@pytest.mark.parametrize("system", ["Darwin", "FreeBSD", "Windows"])
def test_disk_falls_back_to_psync(resolver_all, system):
    inv = build_command(TestKind.DISK, DiskOptions(), resolver=resolver_all, system=system)
    assert "--ioengine=psync" in inv.args


def test_disk_defaults(resolver_all, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    inv = build_command(TestKind.DISK, DiskOptions(size="", runtime=60, filename=""),
                        resolver=resolver_all, system="Linux")
    assert "--size=1G" in inv.args
    assert f"--filename={os.path.join(os.getcwd(), 'fio_testfile.bin')}" in inv.args


@pytest.mark.parametrize("runtime, clamped", [(1, 5), (5, 5), (3600, 3600), (9999, 3600)])
def test_disk_runtime_range(resolver_all, runtime, clamped):
    inv = build_command(TestKind.DISK, DiskOptions(runtime=runtime), resolver=resolver_all)
    assert f"--runtime={clamped}" in inv.args
    assert inv.expected_duration == clamped


def test_network(resolver_all):
    inv = build_command(TestKind.NET, NetworkOptions(" 192.168.1.10 "), resolver=resolver_all)
    assert inv.argv == ["iperf3", "-c", "192.168.1.10"]
    assert inv.expected_duration is None


def test_network_extra_args_are_shell_tokenized(resolver_all):
    opts = NetworkOptions("srv", '-t 30 -P 4 --title "night run"')
    inv = build_command(TestKind.NET, opts, resolver=resolver_all)
    assert inv.argv == ["iperf3", "-c", "srv", "-t", "30", "-P", "4", "--title", "night run"]


def test_network_unbalanced_quotes(resolver_all):
    with pytest.raises(ValidationError):
        build_command(TestKind.NET, NetworkOptions("srv", '--title "oops'), resolver=resolver_all)


@pytest.mark.parametrize("extra", ["", "-t 10", "-R"])
@pytest.mark.parametrize("server", ["", "   "])
def test_network_requires_server(server, extra, resolver_all, resolver_none):
    for resolver in (resolver_all, resolver_none):
        with pytest.raises(ValidationError):
            build_command(TestKind.NET, NetworkOptions(server, extra), resolver=resolver)


@pytest.mark.parametrize("kind", list(TestKind))
def test_expected_duration_only_for_timed_tests(kind, resolver_all):
    inv = build_command(kind, VALID[kind], resolver=resolver_all)
    if kind in (TestKind.GPU, TestKind.NET):
        assert inv.expected_duration is None
    else:
        assert inv.expected_duration is not None


@pytest.mark.parametrize("kind", list(TestKind))
def test_missing_tool_names_it(kind, resolver_none):
    with pytest.raises(MissingDependency) as info:
        build_command(kind, VALID[kind], resolver=resolver_none)
    assert info.value.tool == TOOLS[kind]
    assert info.value.hint == f"sudo apt install {TOOLS[kind]}"
    assert TOOLS[kind] in str(info.value)


def test_only_the_missing_tool_matters(resolver_all):
    resolver = lambda cmd: None if cmd == "fio" else resolver_all(cmd)
    build_command(TestKind.CPU, VALID[TestKind.CPU], resolver=resolver)
    with pytest.raises(MissingDependency):
        build_command(TestKind.DISK, VALID[TestKind.DISK], resolver=resolver)


@pytest.mark.parametrize("kind, options", [
    (TestKind.NET, NetworkOptions("10.0.0.1\x00x")),
    (TestKind.NET, NetworkOptions("10.0.0.1", "-t\x0030")),
    (TestKind.DISK, DiskOptions(filename="/tmp/fio\x00.bin")),
])
def test_nul_characters_are_rejected(kind, options, resolver_all):
    with pytest.raises(ValidationError):
        build_command(kind, options, resolver=resolver_all)


def test_options_must_match_kind(resolver_all):
    with pytest.raises(ValidationError):
        build_command(TestKind.CPU, RamOptions(), resolver=resolver_all)


@pytest.mark.parametrize("kind", [k for k in TestKind if k is not TestKind.NET])
def test_default_options_build(kind, resolver_all):
    inv = build_command(kind, resolver=resolver_all)
    assert isinstance(inv.args, tuple)
    assert type(default_options(kind)).__name__.endswith("Options")


@pytest.mark.parametrize("kind", list(TestKind))
def test_no_placeholders_left(kind, resolver_all):
    inv = build_command(kind, VALID[kind], resolver=resolver_all)
    for arg in inv.argv:
        assert "<" not in arg and "{" not in arg
