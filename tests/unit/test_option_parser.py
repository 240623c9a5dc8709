from dockertask.MODELS.bindings import ConfigurationBindings
from dockertask.PARSERS.option_parser import (
    CommandlineOptionsExtractor,
    DOCKER_COMPOSE_OPTIONS_KEY,
    DOCKER_COMPOSE_SPLIT_KEY,
    DOCKER_COMPOSE_UP_OPTIONS_KEY,
    DOCKER_FILE_SPLIT_KEY,
    DOCKER_RUN_OPTIONS_KEY,
    OptionType,
)


def _bindings(**generic_information):
    return {"genericInformation": generic_information}


def test_default_split_on_space():
    extractor = CommandlineOptionsExtractor()
    bindings = _bindings(**{DOCKER_RUN_OPTIONS_KEY: "--option1 --option2"})
    assert extractor.extract(bindings, DOCKER_RUN_OPTIONS_KEY) == ["--option1", "--option2"]


def test_custom_split_token():
    extractor = CommandlineOptionsExtractor()
    bindings = _bindings(**{
        DOCKER_RUN_OPTIONS_KEY: "--option1!SPLIT!--option2",
        DOCKER_FILE_SPLIT_KEY: "!SPLIT!",
    })
    assert extractor.extract(bindings, DOCKER_RUN_OPTIONS_KEY, DOCKER_FILE_SPLIT_KEY) == ["--option1", "--option2"]


def test_split_token_keeps_spaces_inside_options():
    extractor = CommandlineOptionsExtractor()
    bindings = _bindings(**{
        "docker-exec-command": "/bin/sh!SPLIT!-c!SPLIT!echo 'my test message'",
        DOCKER_FILE_SPLIT_KEY: "!SPLIT!",
    })
    assert extractor.extract(bindings, "docker-exec-command") == ["/bin/sh", "-c", "echo 'my test message'"]


def test_missing_key_gives_empty_list():
    extractor = CommandlineOptionsExtractor()
    assert extractor.extract(_bindings(), DOCKER_RUN_OPTIONS_KEY) == []


def test_missing_or_malformed_generic_information_is_tolerated():
    extractor = CommandlineOptionsExtractor()
    assert extractor.extract({}, DOCKER_RUN_OPTIONS_KEY) == []
    assert extractor.extract(None, DOCKER_RUN_OPTIONS_KEY) == []
    assert extractor.extract({"genericInformation": "not a map"}, DOCKER_RUN_OPTIONS_KEY) == []
    assert extractor.extract(_bindings(**{DOCKER_RUN_OPTIONS_KEY: 42}), DOCKER_RUN_OPTIONS_KEY) == []


def test_accepts_decoded_bindings():
    extractor = CommandlineOptionsExtractor()
    bindings = ConfigurationBindings(_bindings(**{DOCKER_RUN_OPTIONS_KEY: "-t -d"}))
    assert extractor.extract(bindings, DOCKER_RUN_OPTIONS_KEY) == ["-t", "-d"]


def test_repeated_separators_do_not_produce_empty_options():
    assert CommandlineOptionsExtractor.split("-t  -d ") == ["-t", "-d"]


def test_invalid_expression_is_used_literally():
    assert CommandlineOptionsExtractor.split("a[b[c", "[") == ["a", "b", "c"]


def test_compose_options():
    extractor = CommandlineOptionsExtractor()
    bindings = _bindings(**{
        DOCKER_COMPOSE_UP_OPTIONS_KEY: "--option1 --option2",
        DOCKER_COMPOSE_OPTIONS_KEY: "--verbose --host localhost",
    })
    options = extractor.compose_options(bindings)
    assert options[OptionType.UP_OPTION] == ["--option1", "--option2"]
    assert options[OptionType.GENERAL_OPTION] == ["--verbose", "--host", "localhost"]


def test_compose_options_with_split_expression():
    extractor = CommandlineOptionsExtractor()
    bindings = _bindings(**{
        DOCKER_COMPOSE_UP_OPTIONS_KEY: "--option1!SPLIT!--option2",
        DOCKER_COMPOSE_SPLIT_KEY: "!SPLIT!",
    })
    options = extractor.compose_options(bindings)
    assert options[OptionType.UP_OPTION] == ["--option1", "--option2"]
    assert options[OptionType.GENERAL_OPTION] == []
