from django.apps import apps
from django.test.runner import DiscoverRunner

PROJECT_APP_PREFIX = 'apps.'


def project_test_labels():
    names = sorted(
        app_config.name
        for app_config in apps.get_app_configs()
        if app_config.name.startswith(PROJECT_APP_PREFIX)
    )
    # A parent package already discovers the tests of its nested apps.
    return [name for name in names if not any(name.startswith(f"{other}.") for other in names)]


class InstalledAppsOnlyDiscoverRunner(DiscoverRunner):
    def build_suite(self, test_labels=None, **kwargs):
        if not test_labels:
            test_labels = project_test_labels()
        return super().build_suite(test_labels=test_labels, **kwargs)
