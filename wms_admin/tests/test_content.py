import io

from PIL import Image

from .conftest import csrf_token, login_as, post_form


def flashed(client):
    with client.session_transaction() as sess:
        return [message for _, message in sess.get("_flashes", [])]


def png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color=(200, 30, 30)).save(buffer, format="PNG")
    buffer.seek(0)
    return buffer


# Blog
def test_blog_category_create_sends_org_scoped_json(client, stub):
    login_as(client, stub)
    stub.add("POST", "blog/category", {"success": True, "data": {"id": 3}})
    response = post_form(
        client,
        "/blog/categories/add",
        {"category_name": "Forklift Safety", "description": "Checklists", "is_active": "y"},
    )
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/blog/categories")
    body = stub.find("POST", "blog/category")[0].json()
    assert body["CategoryName"] == "Forklift Safety"
    assert body["OrgCode"] == 12
    assert body["IsDeleted"] is False
    assert body["IsActive"] is True
    assert stub.find("POST", "blog/categories/upload") == []
    assert "Blog category added." in flashed(client)


def test_blog_category_name_needs_sluggable_text(client, stub):
    login_as(client, stub, "User")
    response = post_form(client, "/blog/categories/add", {"category_name": "!!!"})
    assert response.status_code == 200
    assert "The category name must contain letters or numbers." in response.get_data(as_text=True)
    assert stub.find("POST", "blog/category") == []


def test_blog_category_image_is_uploaded_first(client, stub):
    login_as(client, stub)
    stub.add("POST", "blog/categories/upload", {"filePath": "/uploads/blog/racks.png"})
    stub.add("POST", "blog/category", {"success": True, "data": {"id": 4}})
    response = client.post(
        "/blog/categories/add",
        data={
            "_csrf_token": csrf_token(client),
            "category_name": "Racking",
            "image": (png_bytes(), "racks.png", "image/png"),
        },
        content_type="multipart/form-data",
    )
    assert response.status_code == 302
    upload = stub.find("POST", "blog/categories/upload")[0]
    assert b'name="image"; filename="racks.png"' in upload.body
    assert stub.find("POST", "blog/category")[0].json()["Img"] == "/uploads/blog/racks.png"


def test_blog_api_failure_is_flashed_and_form_kept(client, stub):
    login_as(client, stub)
    stub.add("PUT", "blog/authors/8", {"message": "Author name already used"}, status=409)
    response = post_form(client, "/blog/authors/8/edit", {"name": "Dup Author"})
    assert response.status_code == 200
    html = response.get_data(as_text=True)
    assert "Author name already used" in html
    assert 'value="Dup Author"' in html


# Careers
JOBS = [
    {"id": "a1", "title": "Picker", "department": "Warehouse", "location": "Pune", "type": "Full-time"},
    {"id": "b2", "title": "Accountant", "department": "Finance", "location": "Mumbai", "type": "Contract"},
]


def test_job_list_filters_by_department(client, stub):
    login_as(client, stub, "User")
    stub.add("GET", "jobs/jd", JOBS)
    response = client.get("/careers/jobs?department=Warehouse")
    assert response.status_code == 200
    html = response.get_data(as_text=True)
    assert "Picker" in html
    assert "Accountant" not in html
    assert stub.find("GET", "jobs/jd")[0].query == {"OrgCode": ["12"]}


def test_job_delete_passes_org_code(client, stub):
    login_as(client, stub)
    stub.add("DELETE", "jobs/jd/a1", {"success": True})
    response = post_form(client, "/careers/jobs/a1/delete")
    assert response.status_code == 302
    call = stub.find("DELETE", "jobs/jd/a1")[0]
    assert call.query == {"OrgCode": ["12"]}


def test_application_requires_pdf_resume(client, stub):
    login_as(client, stub)
    stub.add("GET", "jobs/jd", JOBS)
    response = post_form(
        client,
        "/careers/applications/add",
        {"job_title": "Picker", "name": "Asha", "email": "asha@example.com", "phone": "5550101"},
    )
    assert response.status_code == 200
    assert "A PDF resume is required." in response.get_data(as_text=True)
    assert stub.find("POST", "jobs/application") == []


def test_application_is_forwarded_as_multipart(client, stub):
    login_as(client, stub)
    stub.add("GET", "jobs/jd", JOBS)
    stub.add("POST", "jobs/application", {"success": True, "data": {"id": "c3"}})
    response = client.post(
        "/careers/applications/add",
        data={
            "_csrf_token": csrf_token(client),
            "job_title": "Picker",
            "name": "Asha",
            "email": "asha@example.com",
            "phone": "5550101",
            "resume": (io.BytesIO(b"%PDF-1.4\n%test resume\n"), "asha cv.pdf", "application/pdf"),
        },
        content_type="multipart/form-data",
    )
    assert response.status_code == 302
    body = stub.find("POST", "jobs/application")[0].body
    assert b'name="resume"; filename="asha_cv.pdf"' in body
    assert b'name="jobTitle"' in body
    assert b'name="OrgCode"\r\n\r\n12' in body


def test_application_rejects_fake_pdf(client, stub):
    login_as(client, stub)
    stub.add("GET", "jobs/jd", JOBS)
    response = client.post(
        "/careers/applications/add",
        data={
            "_csrf_token": csrf_token(client),
            "job_title": "Picker",
            "name": "Asha",
            "email": "asha@example.com",
            "phone": "5550101",
            "resume": (io.BytesIO(b"MZ not a pdf"), "cv.pdf", "application/pdf"),
        },
        content_type="multipart/form-data",
    )
    assert response.status_code == 200
    assert stub.find("POST", "jobs/application") == []


# Newsletter
def test_inactive_template_is_not_sent(client, stub):
    login_as(client, stub)
    stub.add("GET", "newsletter/template/4", {"Id": 4, "Name": "Spring", "IsActive": False})
    response = post_form(client, "/newsletter/templates/4/send")
    assert response.status_code == 302
    assert stub.find("POST", "newsletter/send") == []
    assert "Only active templates can be sent. Activate the template first." in flashed(client)


def test_active_template_is_queued(client, stub):
    login_as(client, stub)
    stub.add("GET", "newsletter/template/4", {"success": True, "data": {"Id": 4, "Name": "Spring", "IsActive": 1}})
    stub.add("POST", "newsletter/send", {"success": True})
    response = post_form(client, "/newsletter/templates/4/send")
    assert response.status_code == 302
    assert stub.find("POST", "newsletter/send")[0].json() == {"OrgCode": 12, "TemplateId": 4}
    assert 'Newsletter "Spring" queued for sending.' in flashed(client)


def test_template_list_offers_send_action(client, stub):
    login_as(client, stub)
    stub.add(
        "GET",
        "newsletter/templates/12",
        [
            {"TemplateId": 4, "Name": "Spring", "Subject": "Hello", "IsActive": True},
            {"TemplateId": 5, "Name": "Winter", "Subject": "Brr", "IsActive": False},
        ],
    )
    html = client.get("/newsletter/templates?status=Active").get_data(as_text=True)
    assert "/newsletter/templates/4/send" in html
    assert "Winter" not in html


def test_sent_page_groups_and_filters(client, stub):
    login_as(client, stub)
    stub.add(
        "GET",
        "newsletter/sent/12",
        [
            {"TemplateName": "Spring", "Subject": "Hello", "SentAt": "2026-03-01T08:00:00Z", "Status": "Sent"},
            {"TemplateName": "Spring", "Subject": "Hello", "SentAt": "2026-03-01T08:01:00Z", "Status": "Failed"},
            {"TemplateName": "Summer", "Subject": "Sun", "SentAt": "2026-06-01T08:00:00Z", "Status": "Sent"},
        ],
    )
    html = client.get("/newsletter/sent").get_data(as_text=True)
    assert 'data-total="total">3<' in html
    assert 'data-total="failed">1<' in html

    failed_only = client.get("/newsletter/sent?status=Failed").get_data(as_text=True)
    assert 'data-total="total">3<' in failed_only
    assert 'data-total="sent">2<' in failed_only
    assert 'data-total="failed">1<' in failed_only
    assert "Summer" not in failed_only


# Products
def test_product_category_create_is_multipart_with_status_flag(client, stub):
    login_as(client, stub)
    stub.add("POST", "products/categories", {"success": True})
    response = post_form(client, "/products/categories/add", {"cat_name": "Racks", "description": "Steel"})
    assert response.status_code == 302
    body = stub.find("POST", "products/categories")[0].body
    assert b"CatName=Racks" in body
    assert b"Status=0" in body
    assert b"OrgCode=12" in body


def test_product_category_edit_uses_id_path(client, stub):
    login_as(client, stub)
    stub.add("GET", "products/category/id/3", {"CatId": 3, "CatName": "Bins", "Status": 1})
    html = client.get("/products/categories/3/edit").get_data(as_text=True)
    assert 'value="Bins"' in html
    assert stub.find("GET", "products/category/id/3")


PRODUCT_CATEGORIES = [{"CatId": 1, "CatName": "Racks"}, {"CatId": 2, "CatName": "Bins"}]


def test_product_list_shows_category_names_and_filters(client, stub):
    login_as(client, stub)
    stub.add("GET", "products/categories/12", PRODUCT_CATEGORIES)
    stub.add(
        "GET",
        "products/products/org/12",
        [
            {"ProductId": 5, "Code": "R-1", "ProductName": "Pallet Rack", "CatId": 1, "Status": 1},
            {"ProductId": 6, "Code": "B-1", "ProductName": "Tote Bin", "CatId": 2, "Status": 1},
        ],
    )
    html = client.get("/products/?category=1").get_data(as_text=True)
    assert "Pallet Rack" in html
    assert "<td>Racks</td>" in html
    assert "Tote Bin" not in html
    assert '<option value="1" selected>Racks</option>' in html


def test_subcategory_lookup_returns_json(client, stub):
    login_as(client, stub)
    stub.add(
        "GET",
        "products/subcategories/12/1",
        [
            {"SubCatId": 3, "SubCatName": "Heavy duty", "CatId": 1},
            {"SubCatId": 4, "SubCatName": "Stray", "CatId": 2},
        ],
    )
    response = client.get("/products/subcategories/by-category/1")
    assert response.status_code == 200
    assert response.get_json() == [{"id": 3, "name": "Heavy duty"}]


def test_product_create_forwards_images(client, stub):
    login_as(client, stub)
    stub.add("GET", "products/categories/12", PRODUCT_CATEGORIES)
    stub.add("GET", "products/subcategories/12", [{"SubCatId": 3, "SubCatName": "Heavy duty", "CatId": 1}])
    stub.add("POST", "products/products", {"success": True})
    response = client.post(
        "/products/add",
        data={
            "_csrf_token": csrf_token(client),
            "code": "R-2",
            "product_name": "Cantilever Rack",
            "cat_id": "1",
            "sub_cat_id": "3",
            "details": "<p>Holds <em>long</em> loads</p><script>x()</script>",
            "status": "y",
            "image1": (png_bytes(), "rack.png", "image/png"),
        },
        content_type="multipart/form-data",
    )
    assert response.status_code == 302
    body = stub.find("POST", "products/products")[0].body
    assert b'name="image1"; filename="rack.png"' in body
    assert b'name="SubCatId"\r\n\r\n3' in body
    assert b"<script>" not in body


# Terms
def test_unknown_terms_kind_is_404(client, stub):
    login_as(client, stub)
    assert client.get("/terms/cookies").status_code == 404


def test_faq_entry_is_sanitized_and_org_scoped(client, stub):
    login_as(client, stub)
    stub.add("POST", "faq", {"success": True})
    response = post_form(
        client,
        "/terms/faqs/add",
        {"title": "Orders", "question": "Can I cancel?", "answer": "<p>Yes</p><script>steal()</script>", "is_active": "y"},
    )
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/terms/faqs")
    body = stub.find("POST", "faq")[0].json()
    assert body["OrgCode"] == 12
    assert body["title"] == "Orders"
    assert body["isActive"] is True
    assert "<script>" not in body["answer"]
    assert body["answer"].startswith("<p>Yes</p>")


def test_shipping_terms_use_their_own_collection(client, stub):
    login_as(client, stub)
    stub.add("GET", "shipping/12", [{"id": 2, "question": "Where do you ship?", "answer": "India", "isActive": 1}])
    stub.add("DELETE", "shipping/12/2", {"success": True})
    html = client.get("/terms/shipping").get_data(as_text=True)
    assert "Where do you ship?" in html
    assert "/terms/shipping/2/delete" in html
    post_form(client, "/terms/shipping/2/delete")
    assert stub.find("DELETE", "shipping/12/2")


# Enquiries
ENQUIRIES = [
    {
        "Id": 1,
        "Name": "Asha Rao",
        "Email": "asha@example.com",
        "Mobile": "9800000001",
        "TicketSource": "Website",
        "Message": "Need a quote for " + "pallet racking " * 10,
        "Status": True,
        "TransDate": "2026-03-01T08:00:00Z",
    },
    {
        "Id": 2,
        "Name": "Ravi Menon",
        "Email": "ravi@example.com",
        "TicketSource": "Phone",
        "Message": "Call me back",
        "Status": False,
        "TransDate": "2026-03-02T08:00:00Z",
    },
]


def test_enquiry_list_filters_by_source_and_status(client, stub):
    login_as(client, stub, "User")
    stub.add("GET", "enquiry", ENQUIRIES)
    html = client.get("/enquiries/?source=Phone").get_data(as_text=True)
    assert "Ravi Menon" in html
    assert "Asha Rao" not in html
    assert stub.find("GET", "enquiry")[0].query == {"OrgCode": ["12"]}

    active = client.get("/enquiries/?status=Active").get_data(as_text=True)
    assert "Asha Rao" in active
    assert "Ravi Menon" not in active
    assert "asha@example.com / 9800000001" in active
    assert "racking pal..." in active


def test_enquiry_create_sends_org_scoped_json(client, stub):
    login_as(client, stub)
    stub.add("POST", "enquiry", {"success": True})
    response = post_form(
        client,
        "/enquiries/add",
        {"name": "Asha Rao", "email": "asha@example.com", "ticket_source": "Referral", "message": "Hello"},
    )
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/enquiries/")
    body = stub.find("POST", "enquiry")[0].json()
    assert body["OrgCode"] == 12
    assert body["TicketSource"] == "Referral"
    assert body["Name"] == "Asha Rao"


def test_enquiry_create_requires_a_source(client, stub):
    login_as(client, stub)
    response = post_form(
        client,
        "/enquiries/add",
        {"name": "Asha Rao", "email": "asha@example.com", "ticket_source": "", "message": "Hello"},
    )
    assert response.status_code == 200
    assert stub.find("POST", "enquiry") == []


def test_enquiry_edit_only_updates_status(client, stub):
    login_as(client, stub)
    stub.add("GET", "enquiry/2", ENQUIRIES[1])
    stub.add("PUT", "enquiry/2/status", {"success": True})
    page = client.get("/enquiries/2/edit").get_data(as_text=True)
    assert "Call me back" in page
    assert stub.find("GET", "enquiry/2")[0].query == {"OrgCode": ["12"]}

    response = post_form(client, "/enquiries/2/edit", {"status": "y"})
    assert response.status_code == 302
    assert stub.find("PUT", "enquiry/2/status")[0].json() == {"OrgCode": 12, "Status": True}


def test_enquiry_delete_sends_org_code(client, stub):
    login_as(client, stub)
    stub.add("DELETE", "enquiry/1", {"success": True})
    response = post_form(client, "/enquiries/1/delete")
    assert response.status_code == 302
    assert stub.find("DELETE", "enquiry/1")[0].json() == {"OrgCode": 12}
