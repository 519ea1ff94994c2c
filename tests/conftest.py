"""
Shared fixtures for the interactivity test suite.
"""

import pytest

from interactivity.config import Environment, InteractivityConfig, set_config
from interactivity.core.store import ClientStore, ServerStore


@pytest.fixture(autouse=True)
def testing_config():
    """Every test runs against a fresh TESTING configuration"""
    config = InteractivityConfig.for_environment(Environment.TESTING)
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def server_store(testing_config):
    return ServerStore(testing_config)


@pytest.fixture
def client_store(testing_config):
    return ClientStore(testing_config)


ACCORDION = (
    '<div data-wp-interactive="accordion">'
    '<button data-wp-on--click="actions.toggle" data-wp-bind--aria-expanded="state.isOpen">Toggle</button>'
    '<div id="panel" data-wp-bind--hidden="!state.isOpen">Panel</div>'
    '<h2 id="title" data-wp-text="state.title"></h2>'
    '</div>'
)


@pytest.fixture
def accordion_markup():
    return ACCORDION
