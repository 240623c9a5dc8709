import logging

from dockertask.MODELS.bindings import ConfigurationBindings


def test_missing_bindings_are_empty():
    bindings = ConfigurationBindings(None)
    assert bindings.generic_information == {}
    assert bindings.variables == {}
    assert bindings.scratch_dir is None
    assert bindings.job_and_task_ids() is None
    assert bindings.string_entries() == {}


def test_mis_shaped_values_are_treated_as_absent(caplog):
    bindings = ConfigurationBindings({"genericInformation": "not a map", "localspace": 42})
    with caplog.at_level(logging.WARNING, logger="dockertask"):
        assert bindings.generic_information == {}
        assert bindings.scratch_dir is None
    assert "genericInformation" in caplog.text
    assert "localspace" in caplog.text


def test_generic_value_is_stringified():
    bindings = ConfigurationBindings({"genericInformation": {"docker-image-tag": 7}})
    assert bindings.generic_value("docker-image-tag") == "7"
    assert bindings.generic_value("absent") is None


def test_job_and_task_ids_need_both_variables():
    assert ConfigurationBindings({"variables": {"PA_JOB_ID": 3}}).job_and_task_ids() is None
    assert ConfigurationBindings(
        {"variables": {"PA_JOB_ID": 3, "PA_TASK_ID": "9"}}).job_and_task_ids() == ("3", "9")


def test_string_entries_flatten_nested_maps_without_overriding():
    bindings = ConfigurationBindings({
        "NAME": "top",
        "variables": {"NAME": "nested", "VERSION": "1.2", "COUNT": 4},
        "localspace": "/tmp/space",
        "ignored": [1, 2],
    })
    assert bindings.string_entries() == {
        "NAME": "top",
        "VERSION": "1.2",
        "localspace": "/tmp/space",
    }
