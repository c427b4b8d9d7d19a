from wms_admin.api_client import get_api
from wms_admin.models import SessionUser
from wms_admin.navigation import active_module_codes, build_sidebar

from .conftest import make_user


def labels(sidebar):
    return [item["label"] for item in sidebar]


def sidebar_for(app, user_type, **extra):
    user = SessionUser(dict(make_user(user_type, **extra), UserType=user_type), "tok")
    with app.test_request_context("/admin/"):
        return build_sidebar(user, get_api(token="tok"))


def test_super_admin_sidebar_is_fixed(app, stub):
    sidebar = sidebar_for(app, "SA")
    assert labels(sidebar) == ["Dashboard", "System Updates", "Organization", "User & Module", "Profile"]
    organization = sidebar[2]
    assert [child["label"] for child in organization["children"]] == ["Master", "License", "Modules"]
    assert organization["children"][1]["href"] == "/org/licenses"
    assert stub.calls == []


def test_org_admin_sidebar_follows_org_modules(app, stub):
    stub.add(
        "GET",
        "assignmodules/org-modules/org/12",
        [
            {"ModuleCode": "CMSBlog", "Status": "Active"},
            {"ModuleCode": "CMSHR", "Status": 1},
            {"ModuleCode": "CMSProducts", "Status": "Inactive"},
            {"ModuleCode": "CMSCRM", "Status": "Active"},
            {"ModuleCode": "UNKNOWN", "Status": "Active"},
        ],
    )
    sidebar = sidebar_for(app, "Admin")
    assert labels(sidebar) == [
        "Dashboard",
        "Notifications",
        "Blogs",
        "Careers",
        "Enquiries",
        "User & Module Mgt.",
        "Terms",
        "Profile",
    ]
    assert sidebar[4]["href"] == "/enquiries/"
    assert sidebar[4]["children"] == []
    people = sidebar[5]
    assert [child["label"] for child in people["children"]] == ["User Management", "User Modules", "Assign Modules"]
    assert people["children"][0]["href"] == "/users/"
    terms = sidebar[6]
    assert terms["children"][0]["href"] == "/terms/faqs"
    assert len(terms["children"]) == 5


def test_user_sidebar_follows_user_modules_and_never_shows_products(app, stub):
    stub.add(
        "GET",
        "user-modules/user/7",
        {
            "success": True,
            "data": [
                {"ModuleCode": "CMSNL"},
                {"ModuleCode": "CMSProducts"},
                {"ModuleCode": "CMSNL"},
            ],
        },
    )
    sidebar = sidebar_for(app, "User")
    assert labels(sidebar) == ["Dashboard", "My Notifications", "Newsletters", "Profile"]
    newsletter = sidebar[2]
    assert [child["href"] for child in newsletter["children"]] == [
        "/newsletter/subscribers",
        "/newsletter/templates",
        "/newsletter/sent",
    ]


def test_module_lookup_failure_leaves_base_links(app, stub):
    stub.add("GET", "user-modules/user/7", {"message": "boom"}, status=500)
    assert labels(sidebar_for(app, "User")) == ["Dashboard", "My Notifications", "Profile"]


def test_active_module_codes_skips_inactive_and_blank():
    records = [
        {"ModuleCode": " CMSHR "},
        {"ModuleCode": "CMSNL", "Status": "0"},
        {"ModuleCode": ""},
        {"ModuleCode": "CMSBlog", "Status": True},
    ]
    assert active_module_codes(records) == ["CMSHR", "CMSBlog"]
    assert active_module_codes(None) == []


def test_crm_module_adds_enquiries_link_for_users(app, stub):
    stub.add("GET", "user-modules/user/7", [{"ModuleCode": "CMSCRM"}, {"ModuleCode": "CMSHR"}])
    sidebar = sidebar_for(app, "User")
    assert labels(sidebar) == ["Dashboard", "My Notifications", "Enquiries", "Careers", "Profile"]
    assert sidebar[2]["href"] == "/enquiries/"
