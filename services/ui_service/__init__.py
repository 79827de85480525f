"""
UI service - Streamlit pages for the onboarding flows.
"""

from .account_status import StatusContent, get_status_content

# Lazy import so the status copy can be used without building the page objects
def get_auth_pages(config=None):
    from .auth_pages import get_auth_pages as _get_auth_pages
    return _get_auth_pages(config)

def get_state_machine(config=None):
    from .auth_pages import get_state_machine as _get_state_machine
    return _get_state_machine(config)

__all__ = [
    'StatusContent',
    'get_status_content',
    'get_auth_pages',
    'get_state_machine'
]
