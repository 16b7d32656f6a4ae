from unittest.mock import MagicMock

from kubernetes.client.rest import ApiException

from activity_controller.services.storage_location import StorageLocation, StorageLocationResolver


def _environment(locations):
    return {"spec": {"teamSettings": {"storageLocations": locations}}}


def test_override_wins():
    api = MagicMock()
    resolver = StorageLocationResolver(api, "jx", override_git_url="https://github.com/acme/logs.git")

    location = resolver.resolve()

    assert location.git_url == "https://github.com/acme/logs.git"
    assert location.branch() == "gh-pages"
    api.get_namespaced_custom_object.assert_not_called()


def test_logs_location_from_dev_environment():
    api = MagicMock()
    api.get_namespaced_custom_object.return_value = _environment([
        {"classifier": "reports", "gitUrl": "https://github.com/acme/reports.git"},
        {"classifier": "logs", "gitUrl": "https://github.com/acme/logs.git", "gitBranch": "pages"},
    ])
    resolver = StorageLocationResolver(api, "jx", override_git_url="")

    location = resolver.resolve()
    resolver.resolve()

    assert location.git_url == "https://github.com/acme/logs.git"
    assert location.branch() == "pages"
    assert api.get_namespaced_custom_object.call_count == 1
    args = api.get_namespaced_custom_object.call_args.args
    assert args[2:] == ("jx", "environments", "dev")


def test_missing_environment_gives_empty_location():
    api = MagicMock()
    api.get_namespaced_custom_object.side_effect = ApiException(status=404, reason="Not Found")
    resolver = StorageLocationResolver(api, "jx", override_git_url="")

    assert resolver.resolve().is_empty()


def test_no_logs_classifier_gives_empty_location():
    api = MagicMock()
    api.get_namespaced_custom_object.return_value = _environment([{"classifier": "tests", "bucketUrl": "s3://x"}])
    resolver = StorageLocationResolver(api, "jx", override_git_url="")

    assert resolver.resolve().is_empty()


def test_without_api_client():
    assert StorageLocationResolver(None, "jx", override_git_url="").resolve() == StorageLocation(classifier="logs")
