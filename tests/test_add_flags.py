import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

import pytest

from dataclass_flags import (
    DefaultValueError,
    DuplicateFlagError,
    FlagSet,
    Int64,
    NotARecordError,
    TagError,
    Uint,
    Uint64,
    UnsupportedTypeError,
    add_flags,
    safe_add_flags,
)
from dataclass_flags.values import (
    BoolValue,
    DurationValue,
    FloatValue,
    Int64Value,
    IntValue,
    StringValue,
    Uint64Value,
    UintValue,
)


class Mode:
    """A custom flag value restricted to a few names."""

    def __init__(self, name: str = "") -> None:
        self.name = name

    def set(self, text: str) -> None:
        if text not in ("fast", "slow"):
            raise ValueError(f"unknown mode {text!r}")
        self.name = text

    def __str__(self) -> str:
        return self.name

    def __eq__(self, other):
        return isinstance(other, Mode) and other.name == self.name


class NeedsArgs:
    def __init__(self, required):
        self.required = required

    def set(self, text):
        self.required = text

    def __str__(self):
        return str(self.required)


@dataclass
class ServerConfig:
    host: str = field(default="", metadata={"flag": "host,localhost,host to bind"})
    port: int = field(default=0, metadata={"flag": "port,8080,port to listen on"})
    debug: bool = field(default=False, metadata={"flag": "debug,1,enable debug output"})
    ratio: float = field(default=0.0, metadata={"flag": "ratio,0.5,sampling ratio"})
    timeout: timedelta = field(
        default=timedelta(0), metadata={"flag": "timeout,90m,request timeout"}
    )
    retries: Uint = field(default=0, metadata={"flag": "retries,3,retry count"})
    offset: Int64 = field(default=0, metadata={"flag": "offset,-2,start offset"})
    limit: Uint64 = field(default=0, metadata={"flag": "limit,0x100,row limit"})
    untagged: str = "not a flag"


@dataclass
class EmptyDefaults:
    name: str = field(default="", metadata={"flag": "name,,the name"})
    count: int = field(default=0, metadata={"flag": "count,,how many"})
    enabled: bool = field(default=False, metadata={"flag": "enabled,,turn it on"})


@dataclass
class Database:
    url: str = field(default="", metadata={"flag": "db-url,sqlite://,database url"})
    pool: int = field(default=0, metadata={"flag": "db-pool,5,pool size"})


@dataclass
class Cache:
    ttl: timedelta = field(default=timedelta(0), metadata={"flag": "cache-ttl,1m,cache ttl"})


@dataclass
class Storage:
    database: Database = field(default_factory=Database)
    cache: Cache = field(default_factory=Cache)


@dataclass
class AppConfig:
    name: str = field(default="", metadata={"flag": "name,app,application name"})
    storage: Storage = field(default_factory=Storage)


class TestBuiltinKinds:
    def test_every_annotated_field_registered(self):
        fs = FlagSet()
        add_flags(fs, ServerConfig())
        names = []
        fs.visit_all(lambda flag: names.append(flag.name))
        assert names == [
            "debug",
            "host",
            "limit",
            "offset",
            "port",
            "ratio",
            "retries",
            "timeout",
        ]

    def test_value_cells_match_field_types(self):
        fs = FlagSet()
        add_flags(fs, ServerConfig())
        expected = {
            "host": StringValue,
            "port": IntValue,
            "debug": BoolValue,
            "ratio": FloatValue,
            "timeout": DurationValue,
            "retries": UintValue,
            "offset": Int64Value,
            "limit": Uint64Value,
        }
        for name, cell_type in expected.items():
            assert type(fs.lookup(name).value) is cell_type, name

    def test_defaults_are_applied_and_canonical(self):
        fs = FlagSet()
        add_flags(fs, ServerConfig())
        assert fs.lookup("host").def_value == "localhost"
        assert fs.lookup("port").def_value == "8080"
        assert fs.lookup("debug").def_value == "true"
        assert fs.lookup("ratio").def_value == "0.5"
        assert fs.lookup("timeout").def_value == "1h30m0s"
        assert fs.lookup("retries").def_value == "3"
        assert fs.lookup("offset").def_value == "-2"
        assert fs.lookup("limit").def_value == "256"
        assert fs.lookup("timeout").value.get() == timedelta(minutes=90)

    def test_default_string_matches_current_value(self):
        fs = FlagSet()
        add_flags(fs, ServerConfig())
        fs.visit_all(lambda flag: _assert_default_is_current(flag))

    def test_help_text_from_annotation(self):
        fs = FlagSet()
        add_flags(fs, ServerConfig())
        assert fs.lookup("port").usage == "port to listen on"

    def test_untagged_field_ignored(self):
        fs = FlagSet()
        add_flags(fs, ServerConfig())
        assert fs.lookup("untagged") is None

    def test_accepts_dataclass_type(self):
        fs = FlagSet()
        add_flags(fs, ServerConfig)
        assert fs.lookup("port") is not None

    def test_record_is_not_modified(self):
        config = ServerConfig(port=1)
        add_flags(FlagSet(), config)
        assert config == ServerConfig(port=1)


def _assert_default_is_current(flag):
    assert str(flag.value) == flag.def_value


class TestEmptyDefault:
    def test_empty_default_keeps_zero_value(self):
        fs = FlagSet()
        add_flags(fs, EmptyDefaults())
        assert fs.lookup("name").def_value == ""
        assert fs.lookup("count").def_value == "0"
        assert fs.lookup("enabled").def_value == "false"
        assert fs.lookup("count").value.get() == 0

    def test_non_empty_default_is_applied(self):
        @dataclass
        class Counted:
            count: int = field(default=0, metadata={"flag": "count,0x0a,how many"})

        fs = FlagSet()
        add_flags(fs, Counted())
        assert fs.lookup("count").value.get() == 10
        assert fs.lookup("count").def_value == "10"


class TestNesting:
    def test_nested_fields_registered_with_own_names(self):
        fs = FlagSet()
        add_flags(fs, AppConfig())
        names = []
        fs.visit_all(lambda flag: names.append(flag.name))
        assert names == ["cache-ttl", "db-pool", "db-url", "name"]
        assert fs.lookup("cache-ttl").def_value == "1m0s"

    def test_annotated_nested_dataclass_is_unsupported(self):
        @dataclass
        class Wrapper:
            database: Database = field(
                default_factory=Database, metadata={"flag": "database,,a database"}
            )

        with pytest.raises(UnsupportedTypeError) as exc:
            add_flags(FlagSet(), Wrapper())
        assert "'Database'" in str(exc.value)
        assert "'database'" in str(exc.value)

    def test_duplicate_across_nesting_levels(self):
        @dataclass
        class Clashing:
            pool: int = field(default=0, metadata={"flag": "db-pool,1,outer pool"})
            database: Database = field(default_factory=Database)

        with pytest.raises(DuplicateFlagError) as exc:
            add_flags(FlagSet(), Clashing())
        assert "db-pool" in str(exc.value)


class TestCustomValues:
    def test_custom_value_flag(self):
        @dataclass
        class Runner:
            mode: Mode = field(default_factory=Mode, metadata={"flag": "mode,fast,run mode"})

        fs = FlagSet()
        add_flags(fs, Runner())
        flag = fs.lookup("mode")
        assert isinstance(flag.value, Mode)
        assert flag.def_value == "fast"
        assert str(flag.value) == "fast"

    def test_custom_value_with_empty_default(self):
        @dataclass
        class Runner:
            mode: Mode = field(default_factory=Mode, metadata={"flag": "mode,,run mode"})

        fs = FlagSet()
        add_flags(fs, Runner())
        assert fs.lookup("mode").def_value == ""

    def test_invalid_custom_default(self):
        @dataclass
        class Runner:
            mode: Mode = field(default_factory=Mode, metadata={"flag": "mode,warp,run mode"})

        with pytest.raises(DefaultValueError) as exc:
            add_flags(FlagSet(), Runner())
        assert "unknown mode 'warp'" in str(exc.value)

    def test_custom_value_without_zero_constructor(self):
        @dataclass
        class Holder:
            thing: NeedsArgs = field(
                default=None, metadata={"flag": "thing,x,a thing"}
            )

        with pytest.raises(UnsupportedTypeError) as exc:
            add_flags(FlagSet(), Holder())
        assert "NeedsArgs" in str(exc.value)


class TestOptional:
    def test_optional_fields_use_inner_type(self):
        @dataclass
        class Maybe:
            port: Optional[int] = field(default=None, metadata={"flag": "port,80,port"})
            wait: timedelta | None = field(default=None, metadata={"flag": "wait,1s,wait"})
            mode: Optional[Mode] = field(default=None, metadata={"flag": "mode,slow,mode"})

        fs = FlagSet()
        add_flags(fs, Maybe())
        assert isinstance(fs.lookup("port").value, IntValue)
        assert isinstance(fs.lookup("wait").value, DurationValue)
        assert isinstance(fs.lookup("mode").value, Mode)
        assert fs.lookup("mode").def_value == "slow"


class TestErrors:
    def test_not_a_record(self):
        with pytest.raises(NotARecordError):
            add_flags(FlagSet(), 42)
        with pytest.raises(TypeError):
            add_flags(FlagSet(), {"port": 1})

    def test_malformed_tag(self):
        @dataclass
        class Broken:
            port: int = field(default=0, metadata={"flag": "port,8080"})

        with pytest.raises(TagError):
            add_flags(FlagSet(), Broken())

    def test_unsupported_type_names_type_and_flag(self):
        @dataclass
        class Listy:
            items: list[int] = field(default_factory=list, metadata={"flag": "items,,items"})

        with pytest.raises(UnsupportedTypeError) as exc:
            add_flags(FlagSet(), Listy())
        assert "'list'" in str(exc.value)
        assert "'items'" in str(exc.value)

    def test_duration_default_must_parse(self):
        @dataclass
        class Client:
            timeout: timedelta = field(
                default=timedelta(0), metadata={"flag": "timeout,notaduration,request timeout"}
            )

        with pytest.raises(DefaultValueError) as exc:
            add_flags(FlagSet(), Client())
        message = str(exc.value)
        assert "'notaduration'" in message
        assert "'timeout'" in message
        assert "invalid duration" in message

    def test_duration_field_registers_duration_flag(self):
        @dataclass
        class Client:
            timeout: timedelta = field(
                default=timedelta(0), metadata={"flag": "timeout,5s,request timeout"}
            )

        fs = FlagSet()
        add_flags(fs, Client())
        assert type(fs.lookup("timeout").value) is DurationValue
        assert fs.lookup("timeout").def_value == "5s"

    def test_invalid_int_default(self):
        @dataclass
        class Bad:
            port: Uint = field(default=0, metadata={"flag": "port,-1,port"})

        with pytest.raises(DefaultValueError, match="invalid default value '-1' for flag 'port'"):
            add_flags(FlagSet(), Bad())

    def test_flag_already_in_registry(self):
        fs = FlagSet()
        fs.define_int("port", 1, "defined elsewhere")
        with pytest.raises(DuplicateFlagError, match="flag 'port' already defined"):
            add_flags(fs, ServerConfig())

    def test_registering_same_record_twice(self):
        fs = FlagSet()
        add_flags(fs, EmptyDefaults())
        with pytest.raises(DuplicateFlagError):
            add_flags(fs, EmptyDefaults())

    def test_no_rollback_on_failure(self):
        @dataclass
        class HalfGood:
            good: int = field(default=0, metadata={"flag": "good,1,fine"})
            bad: int = field(default=0, metadata={"flag": "bad,oops,broken"})

        fs = FlagSet()
        with pytest.raises(DefaultValueError):
            add_flags(fs, HalfGood())
        assert fs.lookup("good") is not None


class TestConfiguration:
    def test_custom_tag_key(self):
        @dataclass
        class Cli:
            port: int = field(default=0, metadata={"cli": "port,1,port"})
            other: int = field(default=0, metadata={"flag": "other,2,other"})

        fs = FlagSet()
        add_flags(fs, Cli(), tag_key="cli")
        assert fs.lookup("port") is not None
        assert fs.lookup("other") is None

    def test_private_fields_skipped(self):
        @dataclass
        class Secretive:
            _token: str = field(default="", metadata={"flag": "token,x,secret"})
            visible: str = field(default="", metadata={"flag": "visible,y,shown"})

        fs = FlagSet()
        add_flags(fs, Secretive())
        assert fs.lookup("token") is None
        assert fs.lookup("visible") is not None

    def test_empty_annotation_is_absent(self):
        @dataclass
        class Blank:
            value: int = field(default=0, metadata={"flag": ""})

        fs = FlagSet()
        add_flags(fs, Blank())
        assert fs.lookup("value") is None


def test_safe_add_flags():
    result = safe_add_flags(FlagSet(), ServerConfig())
    assert result.is_ok()

    fs = FlagSet()
    fs.define_int("port", 0, "")
    result = safe_add_flags(fs, ServerConfig())
    assert result.is_err()
    assert "already defined" in result.err()


def test_registration_is_logged(caplog):
    with caplog.at_level(logging.DEBUG, logger="dataclass_flags.binder"):
        add_flags(FlagSet(), AppConfig())
    assert "registered int flag db-pool for field storage.database.pool" in caplog.text
