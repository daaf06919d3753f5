# ghostscan

ghostscan inspects a running Linux host for signs of rootkits, stealthy
persistence and tampering with kernel or userland state. It reads `/proc`,
`/sys`, tracefs, container `state.json` files and the output of `bpftool`,
`ss`, `nft` and `journalctl`, and reports anything that does not add up.

It has no dependencies beyond the Python standard library.

## Installation

```
pip install .
```

ghostscan needs Python 3.10 or later and runs on Linux. Run it as root for
complete results: without root many files under `/proc` cannot be read, and
the checks that need them report errors or skip what they cannot see.

## Usage

```
ghostscan
```

The command takes no options other than `-h`/`--help`. It runs every check in
a fixed order and exits with status 0. For each check it prints the check's
name in brackets, followed by one of:

- `OK` in green when nothing suspicious was found;
- one or more red lines of findings, written as `key=value` pairs, for
  example `pid=1234, comm=[kworker], kthread_name_like=true, has_user_mm=true`;
- a red error message when the check could not collect what it needs.

A finding block may end with a `collection_errors=...` line listing sources
that could not be read while the rest of the check still ran.

## Checks

In the order they run:

1. **Hidden LKM** – compares module names from `/proc/modules`,
   `/sys/module` and the `[module]` tags in `/proc/kallsyms`; reports modules
   missing from some of them (modules seen only in sysfs are ignored).
2. **Kernel taint** – reports module-related taint bits in
   `/proc/sys/kernel/tainted` that no module's `taint` file or
   `/proc/modules` entry accounts for.
3. **Ftrace redirection** – reports a tracer other than `nop` in tracefs, or
   `sys_`, `vfs_`, `tcp_` or `security_` symbols in `set_ftrace_filter`.
4. **Module list linkage** – modules in `/proc/modules` that are absent from
   `/sys/module`, and modules listed among their own holders.
5. **BPF kprobe attachments** – kprobe/kretprobe links from
   `bpftool -j link show` whose target is a sensitive symbol.
6. **BPF LSM** – every LSM program in `bpftool -j prog show`.
7. **Kernel thread masquerade** – processes whose name is bracketed like a
   kernel thread but which have a non-zero `VmSize` or a non-empty `maps`.
8. **Deleted or memfd processes** – executables marked `(deleted)` or backed
   by `memfd:`.
9. **Hidden listeners** – TCP and UDP listeners shown by `ss` that are absent
   from `/proc/net/{tcp,udp}[6]`.
10. **Netfilter cloaking** – nftables chains without a hook, `jump`/`goto`
    to chains that do not exist, and `@set` references to undefined sets.
11. **Local port backdoors** – processes with listening TCP sockets whose
    executable lies under `/tmp/` or `/home/` or has been deleted.
12. **ld.so.preload** – `/etc/ld.so.preload` entries that are missing,
    world-writable, not owned by root, or not mode 644.
13. **Cron ghost jobs** – jobs in `/etc/crontab`, `/etc/cron.d`,
    `/var/spool/cron` and `/etc/anacrontab` whose program is missing or runs
    from a `/tmp/` directory.
14. **Hidden bind mounts** – bind mounts over `/etc`, `/bin`, `/sbin`, `/usr`
    or `/proc`, and `/proc` mounted with `hidepid=2`.
15. **Live LD_PRELOAD** – preloaded libraries that are deleted, missing, or
    in a world-writable directory.
16. **Library search hijack** – processes running as root or holding
    capabilities that map libraries from world-writable directories.
17. **LD_AUDIT in daemons** – processes without a controlling terminal that
    have `LD_AUDIT` set.
18. **Large RX anonymous regions** – anonymous executable mappings of 64 KiB
    or more in terminal-less processes with no JIT markers; only the first 256
    entries of `/proc` are examined.
19. **Kernel text not RO** – `/sys/kernel/rodata_enabled`, or failing that
    `CONFIG_STRICT_KERNEL_RWX` in `/proc/config.gz`.
20. **Kernel cmdline** – `audit=0`, `lockdown=none`, `ima_appraise_tcb=0` and
    any `lsm=` setting.
21. **Host PID namespace shared** – containers, found through `state.json`
    files under `/run`, `/var/run`, `/var/lib/containers/storage/overlay-containers`
    and `/var/lib/docker/containers`, whose PID namespace is that of PID 1.
22. **Audit disabled or dropping** – `audit_enabled` of 0, lost events, or a
    backlog limit below 8.
23. **Journal gaps** – gaps of more than an hour between the last 2000
    journal entries of the current boot.
24. **Kernel message suppression** – `dmesg_restrict` not 1 or a console
    `printk` level above 7.

## Using the checks from Python

Each module in `ghostscan.scanners` has a `run()` function that returns
`None` when nothing was found, a string of findings otherwise, and raises
`ghostscan.outcome.ScanError` when the check cannot be performed. Most
modules also expose the parsing behind the check, for example
`hidden_bind_mounts.analyze_mountinfo(content)` or
`netfilter_cloaking.analyze_ruleset(document)`, so saved data can be
examined off the host. `ghostscan.cli.SCANNERS` lists the checks in the
order the command runs them.

## Limitations

- ghostscan loads no BPF programs. It cannot enumerate tasks or sockets from
  inside the kernel, so the hidden-listeners check compares `ss` with
  `/proc/net` only, and always reports that BPF listener collection is not
  supported: as a `collection_errors=` line beside findings, or as its error
  message when there are none.
- It does not inspect the syscall table, netfilter hooks, XDP/TC or sockmap
  programs, BPF pins, ptrace relationships, systemd units, SSH
  configuration, sudoers, PAM/NSS modules, overlay filesystems or container
  mount sources.
- Cron checks cover the crontab files named above; `at` jobs are not read.

## Development

```
pip install -e ".[test]"
pytest
```