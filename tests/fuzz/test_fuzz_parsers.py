import random
import string

from dockertask.MODELS.actions import ActionSet
from dockertask.PARSERS.option_parser import CommandlineOptionsExtractor
from dockertask.UTILS.string_interpolation import EnvironmentInterpolator


def random_string(length):
    return ''.join(random.choice(string.printable) for _ in range(length))


def test_fuzz_interpolator():
    context = {"A": "1", "PATH_VAR": "/opt", "EMPTY": ""}
    for _ in range(200):
        content = random_string(random.randint(0, 1000))
        result = EnvironmentInterpolator.interpolate(content, context)
        assert isinstance(result, str)
        # Nothing to resolve: text is untouched.
        assert EnvironmentInterpolator.interpolate(content, {}) == content


def test_fuzz_option_extractor():
    extractor = CommandlineOptionsExtractor()
    for _ in range(200):
        raw = random_string(random.randint(0, 300))
        split = random_string(random.randint(1, 4))
        bindings = {"genericInformation": {
            "docker-run-options": raw,
            "docker-file-options-split-regex": split,
        }}
        options = extractor.extract(bindings, "docker-run-options")
        assert all(isinstance(option, str) and option for option in options)


def test_fuzz_action_set():
    for _ in range(200):
        actions = ActionSet.parse(random_string(random.randint(0, 100)))
        assert actions <= ActionSet.parse("build,run,exec,stop,rm,rmi")


def test_edge_cases_parsers():
    # Empty string
    assert EnvironmentInterpolator.interpolate("", {"A": "1"}) == ""
    assert CommandlineOptionsExtractor.split("") == []
    assert ActionSet.parse("") == frozenset()

    # Very long line
    EnvironmentInterpolator.interpolate("RUN " + "$A" * 10000, {"A": "a"})

    # Dangling tokens
    assert EnvironmentInterpolator.interpolate("$ ${ ${} $}", {"A": "1"}) == "$ ${ ${} $}"
