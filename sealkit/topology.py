"""Core and drive topology read from a libconfig-style configuration file."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from sealkit.constants import NODES_PER_HASHER

# Buffers are sized for this many hashers per coordinator.
MAX_HASHERS_PER_COORD = 14


class ConfigError(ValueError):
    """The configuration text could not be parsed."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        super().__init__(f"line {line}: {message}" if line is not None else message)


class TopologyError(ValueError):
    """The configuration is readable but describes an invalid topology."""


def _physical_cores() -> int:
    return (os.cpu_count() or 0) // 2


# ---------------------------------------------------------------------------
# Configuration parsing
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
     (?P<ws>\s+)
    |(?P<comment>\#[^\n]*|//[^\n]*|/\*.*?\*/)
    |(?P<string>"(?:\\.|[^"\\])*")
    |(?P<hex>0[xX][0-9A-Fa-f]+(?:LL?)?)
    |(?P<float>[-+]?(?:\d+\.\d*|\.\d+)(?:[eE][-+]?\d+)?|[-+]?\d+[eE][-+]?\d+)
    |(?P<int>[-+]?\d+(?:LL?)?)
    |(?P<name>[A-Za-z*][-A-Za-z0-9_*]*)
    |(?P<punct>[=:;,{}\[\]()])
    """,
    re.VERBOSE | re.DOTALL,
)

_ESCAPES = {"\\": "\\", '"': '"', "n": "\n", "r": "\r", "t": "\t", "f": "\f"}


class _Token(NamedTuple):
    kind: str
    text: str
    line: int


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    line = 1
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ConfigError(f"unexpected character {text[pos]!r}", line)
        kind = match.lastgroup or ""
        if kind not in ("ws", "comment"):
            tokens.append(_Token(kind, match.group(), line))
        line += match.group().count("\n")
        pos = match.end()
    tokens.append(_Token("eof", "", line))
    return tokens


def _unescape(body: str, line: int) -> str:
    def replace(match: re.Match[str]) -> str:
        escape = match.group(1)
        if escape.startswith("x") and len(escape) == 3:
            return chr(int(escape[1:], 16))
        if escape in _ESCAPES:
            return _ESCAPES[escape]
        raise ConfigError(f"invalid escape sequence \\{escape}", line)

    return re.sub(r"\\(x[0-9A-Fa-f]{2}|.)", replace, body, flags=re.DOTALL)


class _Parser:
    def __init__(self, text: str) -> None:
        self._tokens = _tokenize(text)
        self._pos = 0

    def _peek(self) -> _Token:
        return self._tokens[self._pos]

    def _take(self) -> _Token:
        token = self._tokens[self._pos]
        if token.kind != "eof":
            self._pos += 1
        return token

    def _at(self, closing: str | None) -> bool:
        token = self._peek()
        if token.kind == "eof":
            if closing is None:
                return True
            raise ConfigError(f"unexpected end of input, expected {closing!r}", token.line)
        return closing is not None and token.kind == "punct" and token.text == closing

    def parse(self) -> dict[str, Any]:
        return self._settings(None)

    def _settings(self, closing: str | None) -> dict[str, Any]:
        result: dict[str, Any] = {}
        while not self._at(closing):
            name = self._take()
            if name.kind != "name":
                raise ConfigError(f"expected a setting name, got {name.text!r}", name.line)
            separator = self._take()
            if separator.text not in ("=", ":") or separator.kind != "punct":
                raise ConfigError(f"expected '=' or ':' after {name.text!r}", separator.line)
            if name.text in result:
                raise ConfigError(f"duplicate setting {name.text!r}", name.line)
            result[name.text] = self._value()
            if self._peek().kind == "punct" and self._peek().text in (";", ","):
                self._take()
        self._take()
        return result

    def _elements(self, closing: str) -> list[Any]:
        items: list[Any] = []
        if self._at(closing):
            self._take()
            return items
        while True:
            items.append(self._value())
            token = self._take()
            if token.kind == "punct" and token.text == closing:
                return items
            if token.kind != "punct" or token.text != ",":
                raise ConfigError(f"expected ',' or {closing!r}, got {token.text!r}", token.line)
            if self._at(closing):
                self._take()
                return items

    def _value(self) -> Any:
        token = self._take()
        if token.kind == "punct":
            if token.text == "{":
                return self._settings("}")
            if token.text == "[":
                return self._elements("]")
            if token.text == "(":
                return self._elements(")")
        elif token.kind == "string":
            parts = [_unescape(token.text[1:-1], token.line)]
            while self._peek().kind == "string":
                following = self._take()
                parts.append(_unescape(following.text[1:-1], following.line))
            return "".join(parts)
        elif token.kind == "hex":
            return int(token.text.rstrip("Ll"), 16)
        elif token.kind == "int":
            return int(token.text.rstrip("Ll"), 10)
        elif token.kind == "float":
            return float(token.text)
        elif token.kind == "name" and token.text.lower() in ("true", "false"):
            return token.text.lower() == "true"
        where = token.text or "end of input"
        raise ConfigError(f"unexpected {where!r} where a value was expected", token.line)


def parse_config(text: str) -> dict[str, Any]:
    """Parse libconfig-style text into nested dicts, lists and scalars."""
    return _Parser(text).parse()


# ---------------------------------------------------------------------------
# Topology
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Coordinator:
    """A coordinator core and the hashers it drives."""

    hashers_per_core: int
    core: int
    num_hashers: int
    physical_cores: int = field(default_factory=_physical_cores)

    def num_sectors(self) -> int:
        return self.num_hashers * NODES_PER_HASHER

    def hasher_core(self, index: int) -> int:
        """Core number on which hasher ``index`` runs."""
        if self.hashers_per_core == 1:
            return self.core + 1 + index
        if index & 1:
            # Odd hashers run on the hyperthread.
            return self.core + 1 + index // self.hashers_per_core + self.physical_cores
        return self.core + 1 + index // self.hashers_per_core


@dataclass
class SectorConfig:
    """Coordinator layout used for one number of parallel sectors."""

    hashers_per_core: int
    sectors: int
    coordinators: list[Coordinator] = field(default_factory=list)

    def num_coordinators(self) -> int:
        return len(self.coordinators)

    def num_hashers(self) -> int:
        return sum(coordinator.num_hashers for coordinator in self.coordinators)

    def num_sectors(self) -> int:
        return self.num_hashers() * NODES_PER_HASHER

    def num_hashing_cores(self) -> int:
        per_core = self.hashers_per_core
        return self.num_coordinators() + (self.num_hashers() + per_core - 1) // per_core


class _MissingSetting(Exception):
    pass


def _lookup(node: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(node, dict):
            raise TopologyError(f"setting {key!r} looked up in a non-group value")
        if key not in node:
            raise _MissingSetting(key)
        node = node[key]
    return node


def _int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TopologyError(f"setting {name!r} must be an integer, got {value!r}")
    return value


def _sequence(value: Any, name: str) -> list[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return list(value.values())
    raise TopologyError(f"setting {name!r} must be a list, array or group")


_CORE_SETTINGS = (
    ("pc1_reader", ("topology", "pc1", "reader")),
    ("pc1_writer", ("topology", "pc1", "writer")),
    ("pc1_orchestrator", ("topology", "pc1", "orchestrator")),
    ("pc1_qpair_reader", ("topology", "pc1", "qpair_reader")),
    ("pc1_qpair_writer", ("topology", "pc1", "qpair_writer")),
    ("pc1_reader_sleep_time", ("topology", "pc1", "reader_sleep_time")),
    ("pc1_writer_sleep_time", ("topology", "pc1", "writer_sleep_time")),
    ("pc2_reader", ("topology", "pc2", "reader")),
    ("pc2_hasher", ("topology", "pc2", "hasher")),
    ("pc2_hasher_cpu", ("topology", "pc2", "hasher_cpu")),
    ("pc2_writer", ("topology", "pc2", "writer")),
    ("pc2_writer_cores", ("topology", "pc2", "writer_cores")),
    ("pc2_sleep_time", ("topology", "pc2", "sleep_time")),
    ("pc2_qpair", ("topology", "pc2", "qpair")),
    ("c1_reader", ("topology", "c1", "reader")),
    ("c1_sleep_time", ("topology", "c1", "sleep_time")),
    ("c1_qpair", ("topology", "c1", "qpair")),
)


@dataclass
class Topology:
    """Drives, core assignments and hasher layouts for sealing.

    Settings are read in a fixed order; reading stops at the first missing
    setting and every setting after it stays ``None``.
    """

    hashers_per_core: int | None = None
    nvme_addrs: frozenset[str] = frozenset()
    sector_configs: dict[int, SectorConfig] = field(default_factory=dict)
    pc1_reader: int | None = None
    pc1_writer: int | None = None
    pc1_orchestrator: int | None = None
    pc1_qpair_reader: int | None = None
    pc1_qpair_writer: int | None = None
    pc1_reader_sleep_time: int | None = None
    pc1_writer_sleep_time: int | None = None
    pc2_reader: int | None = None
    pc2_hasher: int | None = None
    pc2_hasher_cpu: int | None = None
    pc2_writer: int | None = None
    pc2_writer_cores: int | None = None
    pc2_sleep_time: int | None = None
    pc2_qpair: int | None = None
    c1_reader: int | None = None
    c1_sleep_time: int | None = None
    c1_qpair: int | None = None
    physical_cores: int = field(default_factory=_physical_cores)

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> Topology:
        try:
            with open(path, encoding="utf-8") as handle:
                text = handle.read()
        except OSError as exc:
            raise TopologyError(f"Could not read config file {os.fspath(path)}") from exc
        return cls.from_text(text)

    @classmethod
    def from_text(cls, text: str) -> Topology:
        root = parse_config(text)
        physical = _physical_cores()
        values: dict[str, Any] = {"physical_cores": physical}
        try:
            nvme = _sequence(_lookup(root, "spdk", "nvme"), "nvme")
            if not all(isinstance(addr, str) for addr in nvme):
                raise TopologyError("nvme addresses must be strings")
            values["nvme_addrs"] = frozenset(nvme)

            per_core = _int(
                _lookup(root, "topology", "pc1", "hashers_per_core"), "hashers_per_core"
            )
            if per_core not in (1, 2):
                raise TopologyError(f"hashers_per_core must be 1 or 2, got {per_core}")
            values["hashers_per_core"] = per_core

            configs: dict[int, SectorConfig] = {}
            values["sector_configs"] = configs
            entries = _lookup(root, "topology", "pc1", "sector_configs")
            for entry in _sequence(entries, "sector_configs"):
                sectors = _int(_lookup(entry, "sectors"), "sectors")
                coordinators = []
                for coord in _sequence(_lookup(entry, "coordinators"), "coordinators"):
                    core = _int(_lookup(coord, "core"), "core")
                    hashers = _int(_lookup(coord, "hashers"), "hashers")
                    if hashers > MAX_HASHERS_PER_COORD:
                        raise TopologyError(
                            f"coordinator on core {core} has {hashers} hashers,"
                            f" at most {MAX_HASHERS_PER_COORD} are supported"
                        )
                    coordinators.append(Coordinator(per_core, core, hashers, physical))
                configs.setdefault(sectors, SectorConfig(per_core, sectors, coordinators))

            for name, path in _CORE_SETTINGS:
                values[name] = _int(_lookup(root, *path), name)
        except _MissingSetting:
            pass
        return cls(**values)

    def sector_config(self, parallel_sectors: int) -> SectorConfig | None:
        return self.sector_configs.get(parallel_sectors)

    def describe(self, parallel_sectors: int) -> str:
        """Render the core layout table for a number of parallel sectors."""
        config = self.sector_config(parallel_sectors)
        if config is None:
            raise KeyError(f"no sector configuration for {parallel_sectors} sectors")
        lines = [
            f"Num coordinators:  {config.num_coordinators()}",
            f"Num hashers:       {config.num_hashers()}",
            f"Num sectors:       {config.num_sectors()}",
            f"Num hashing cores: {config.num_hashing_cores()}",
            "core   process0      HT   process1",
        ]
        sector = 0
        for number, coord in enumerate(config.coordinators):
            lines.append(f"{coord.core:2d}     coord{number:<2d}")
            j = 0
            while j < coord.num_hashers:
                core = coord.hasher_core(j)
                if self.hashers_per_core == 1 or j == coord.num_hashers - 1:
                    lines.append(
                        f"{core:2d}      {sector:2d},{sector + 1:2d}"
                        f"        {core + self.physical_cores:2d}"
                    )
                    sector += 2
                    j += 1
                else:
                    lines.append(
                        f"{core:2d}      {sector:2d},{sector + 1:2d}"
                        f"        {coord.hasher_core(j + 1):2d}"
                        f"     {sector + 2:2d},{sector + 3:2d}"
                    )
                    sector += 4
                    j += 2
        return "\n".join(lines) + "\n"