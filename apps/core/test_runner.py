from django.apps import apps
from django.test.runner import DiscoverRunner


PROJECT_APP_PREFIX = 'apps.core.'


def project_test_labels():
    return sorted(
        app_config.name
        for app_config in apps.get_app_configs()
        if app_config.name.startswith(PROJECT_APP_PREFIX)
    )


class ProjectAppsDiscoverRunner(DiscoverRunner):
    """Discover only the CRM app suites when no labels are passed."""

    def build_suite(self, test_labels=None, **kwargs):
        labels = list(test_labels or []) or project_test_labels()
        return super().build_suite(labels, **kwargs)
