"""Platform classifier normalization.

Maps raw operating-system and architecture names (as reported by the
interpreter or a build host) to the ``{os}-{arch}`` tags used to publish
prebuilt native binaries, for example ``linux-x86_64`` or ``osx-aarch_64``.

Unrecognized values map to ``unknown`` rather than raising, so a request
proceeds and fails later with an "artifact not found" error that names the
offending classifier.
"""

from __future__ import annotations

import platform
import re

UNKNOWN = "unknown"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

# Ordered prefix rules; the first match wins.
_OS_PREFIXES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("aix",), "aix"),
    (("hpux",), "hpux"),
    (("linux",), "linux"),
    (("macosx", "osx"), "osx"),
    (("freebsd",), "freebsd"),
    (("openbsd",), "openbsd"),
    (("netbsd",), "netbsd"),
    (("solaris", "sunos"), "sunos"),
    (("windows",), "windows"),
    (("darwin",), "osx"),
)

# Ordered full-match rules; the first match wins.
_ARCH_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"x8664|amd64|ia32e|em64t|x64"), "x86_64"),
    (re.compile(r"x8632|x86|i[3-6]86|ia32|x32"), "x86_32"),
    (re.compile(r"ia64|itanium64"), "itanium_64"),
    (re.compile(r"sparc|sparc32"), "sparc_32"),
    (re.compile(r"sparcv9|sparc64"), "sparc_64"),
    (re.compile(r"arm|arm32"), "arm_32"),
    (re.compile(r"aarch64"), "aarch_64"),
    (re.compile(r"ppc|ppc32"), "ppc_32"),
    (re.compile(r"ppc64"), "ppc_64"),
    (re.compile(r"ppc64le"), "ppcle_64"),
    (re.compile(r"s390"), "s390_32"),
    (re.compile(r"s390x"), "s390_64"),
    (re.compile(r"arm64"), "aarch_64"),
)


def normalize(value: str | None) -> str:
    """Lower-case a raw name and strip every non-alphanumeric character.

    Args:
        value: Raw OS or architecture name. None is treated as empty.

    Returns:
        Normalized name, e.g. ``"Mac OS X"`` -> ``"macosx"``.
    """
    if value is None:
        return ""
    return _NON_ALNUM.sub("", value.lower())


def normalize_os(value: str | None) -> str:
    """Map a raw OS name to its canonical token.

    ``os400`` only matches when it is not followed by another digit.

    Args:
        value: Raw OS name, e.g. ``"Linux"`` or ``"Windows 10"``.

    Returns:
        Canonical OS token, or ``"unknown"``.
    """
    name = normalize(value)

    for prefixes, canonical in _OS_PREFIXES[:2]:
        if name.startswith(prefixes):
            return canonical

    if name.startswith("os400"):
        if len(name) <= 5 or not name[5].isdigit():
            return "os400"

    for prefixes, canonical in _OS_PREFIXES[2:]:
        if name.startswith(prefixes):
            return canonical

    return UNKNOWN


def normalize_arch(value: str | None) -> str:
    """Map a raw architecture name to its canonical token.

    Args:
        value: Raw architecture name, e.g. ``"AMD64"`` or ``"aarch64"``.

    Returns:
        Canonical architecture token, or ``"unknown"``.
    """
    name = normalize(value)
    for pattern, canonical in _ARCH_PATTERNS:
        if pattern.fullmatch(name):
            return canonical
    return UNKNOWN


def classify(os_name: str | None, arch: str | None) -> str:
    """Build the ``{os}-{arch}`` classifier for raw platform names.

    Args:
        os_name: Raw operating system name.
        arch: Raw architecture name.

    Returns:
        Classifier string. Never raises.

    Example:
        >>> classify("Linux", "amd64")
        'linux-x86_64'
        >>> classify("Plan9", "mips")
        'unknown-unknown'
    """
    return f"{normalize_os(os_name)}-{normalize_arch(arch)}"


def detect_classifier() -> str:
    """Classify the platform the current interpreter runs on.

    Returns:
        Classifier for ``platform.system()`` / ``platform.machine()``.
    """
    return classify(platform.system(), platform.machine())
