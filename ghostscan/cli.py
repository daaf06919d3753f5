"""Run every scanner and print its verdict."""

from __future__ import annotations

import argparse
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ghostscan.outcome import ScanError
from ghostscan.scanners import (
    audit_disabled,
    bpf_kprobe_attachments,
    bpf_lsm,
    cron_ghost,
    deleted_memfd,
    ftrace_redirection,
    hidden_bind_mounts,
    hidden_listeners,
    hidden_lkm,
    host_pid_ns,
    journal_gaps,
    kernel_cmdline,
    kernel_message_suppression,
    kernel_taint,
    kernel_text_ro,
    kernel_thread_masquerade,
    large_rx,
    ld_audit,
    ld_so_preload,
    library_search_hijack,
    live_ld_preload,
    local_port_backdoors,
    module_list_linkage_tamper,
    netfilter_cloaking,
)

COLOR_GREEN = "\x1b[32m"
COLOR_RED = "\x1b[31m"
COLOR_RESET = "\x1b[0m"


@dataclass(frozen=True)
class Scanner:
    """A named check."""

    name: str
    func: Callable[[], str | None]

    def run(self) -> str | None:
        """Perform the check; raises ScanError when it cannot."""
        return self.func()


SCANNERS = (
    Scanner("Hidden LKM (proc/sysfs vs kallsyms clusters)", hidden_lkm.run),
    Scanner("Kernel taint with no visible cause", kernel_taint.run),
    Scanner("Ftrace redirection on critical paths", ftrace_redirection.run),
    Scanner("Module list linkage tamper", module_list_linkage_tamper.run),
    Scanner("BPF kprobe attachments to sensitive symbols", bpf_kprobe_attachments.run),
    Scanner("BPF LSM present", bpf_lsm.run),
    Scanner("Kernel thread masquerade", kernel_thread_masquerade.run),
    Scanner("Deleted-binary or memfd processes", deleted_memfd.run),
    Scanner("Hidden listeners (netlink-only)", hidden_listeners.run),
    Scanner("Netfilter cloaking artifacts", netfilter_cloaking.run),
    Scanner("Local port backdoors (tmp/deleted)", local_port_backdoors.run),
    Scanner("ld.so.preload tamper", ld_so_preload.run),
    Scanner("Cron/anacron/at ghost jobs", cron_ghost.run),
    Scanner("Hidden bind/immutable mounts", hidden_bind_mounts.run),
    Scanner("Live LD_PRELOAD to deleted/writable libs", live_ld_preload.run),
    Scanner("Library search hijack (SUID/priv)", library_search_hijack.run),
    Scanner("LD_AUDIT in daemons (no TTY)", ld_audit.run),
    Scanner("Large RX-anonymous regions in daemons (non-JIT)", large_rx.run),
    Scanner("Kernel text not RO (best-effort)", kernel_text_ro.run),
    Scanner("Kernel cmdline disables auditing/lockdown/IMA", kernel_cmdline.run),
    Scanner("Host PID namespace shared", host_pid_ns.run),
    Scanner("Audit disabled or dropping", audit_disabled.run),
    Scanner("Journal gaps (current boot)", journal_gaps.run),
    Scanner("Kernel message suppression", kernel_message_suppression.run),
)


def _lines(text: str) -> list[str]:
    parts = text.split("\n")
    if parts and parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


def render(outcome: str | None, error: str | None) -> list[str]:
    """Turn a scanner result into coloured output lines."""
    text = error if error is not None else outcome
    if text is None:
        return [f"{COLOR_GREEN}OK{COLOR_RESET}"]
    return [f"{COLOR_RED}{line}{COLOR_RESET}" if line else "" for line in _lines(text)]


def main(argv: Sequence[str] | None = None) -> int:
    """Run all scanners in order and print their results."""
    parser = argparse.ArgumentParser(
        prog="ghostscan", description="Scan the running system for signs of concealment."
    )
    parser.parse_args(argv)

    for scanner in SCANNERS:
        print(f"[{scanner.name}]")
        try:
            outcome, error = scanner.run(), None
        except ScanError as err:
            outcome, error = None, str(err)
        for line in render(outcome, error):
            print(line)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())