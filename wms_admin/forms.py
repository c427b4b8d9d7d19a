from datetime import date, datetime, timezone

from flask_wtf import FlaskForm
from flask_wtf.file import FileField
from wtforms import (
    BooleanField,
    DateField,
    DateTimeLocalField,
    EmailField,
    HiddenField,
    IntegerField,
    PasswordField,
    SelectField,
    StringField,
    TextAreaField,
    URLField,
)
from wtforms.validators import DataRequired, Email, Length, NumberRange, Optional, Regexp, URL, ValidationError

from .models import NOTIFICATION_TYPE_GENERAL, NOTIFICATION_TYPE_PERSONAL, parse_api_datetime
from .utils import as_bool, is_valid_url, sanitize_html

API_DATETIME_FORMAT = '%Y-%m-%dT%H:%M:%S.000Z'
JOB_TYPE_CHOICES = ['Full-time', 'Part-time', 'Contract', 'Internship', 'Remote']
LICENSE_STATUS_CHOICES = ['Active', 'Inactive', 'Suspended']
RECORD_STATUS_CHOICES = ['Active', 'Inactive']
ENQUIRY_SOURCE_CHOICES = ['Website', 'Phone', 'Email', 'WhatsApp', 'Social Media', 'Referral', 'Walk-in']
NOTIFICATION_TYPE_CHOICES = [
    (NOTIFICATION_TYPE_GENERAL, 'General'),
    (NOTIFICATION_TYPE_PERSONAL, 'Personal'),
]


def _coerce_optional_int(value):
    if value in (None, '', 'None'):
        return None
    return int(value)


def http_link(form, field):
    if not is_valid_url((field.data or '').strip()):
        raise ValidationError('Links must start with http:// or https://.')


class ApiForm(FlaskForm):
    API_FIELDS = {}
    RICH_TEXT_FIELDS = ()

    class Meta:
        # CSRF is enforced globally in app.before_request.
        csrf = False

    def load_record(self, record):
        for field_name, api_key in self.API_FIELDS.items():
            field = getattr(self, field_name)
            value = record.get(api_key)
            if isinstance(field, BooleanField):
                field.data = as_bool(value)
            elif isinstance(field, DateTimeLocalField):
                parsed = parse_api_datetime(value)
                field.data = parsed.replace(tzinfo=None) if parsed else None
            elif isinstance(field, DateField):
                parsed = parse_api_datetime(value)
                field.data = parsed.date() if parsed else None
            elif isinstance(field, (IntegerField, SelectField)) and value not in (None, ''):
                try:
                    field.data = field.coerce(value) if isinstance(field, SelectField) else int(value)
                except (TypeError, ValueError):
                    field.data = None
            else:
                field.data = '' if value is None else value
        return self

    def _value_for_api(self, field_name):
        field = getattr(self, field_name)
        value = field.data
        if isinstance(value, str):
            value = value.strip()
            if field_name in self.RICH_TEXT_FIELDS:
                value = sanitize_html(value)
        elif isinstance(value, datetime):
            value = value.replace(tzinfo=timezone.utc).strftime(API_DATETIME_FORMAT)
        elif isinstance(value, date):
            value = value.isoformat()
        return value

    def to_payload(self):
        return {api_key: self._value_for_api(name) for name, api_key in self.API_FIELDS.items()}

    def to_form_data(self, skip_empty=False):
        """Multipart variant: every value is a string, booleans become "1"/"0"."""
        data = {}
        for api_key, value in self.to_payload().items():
            if isinstance(value, bool):
                value = '1' if value else '0'
            elif value is None:
                value = ''
            else:
                value = str(value)
            if skip_empty and value == '':
                continue
            data[api_key] = value
        return data


class LoginForm(ApiForm):
    login_id = StringField('Login ID', validators=[DataRequired(), Length(max=80)])
    password = PasswordField('Password', validators=[DataRequired(), Length(max=200)])


class _PersonFieldsMixin:
    user_name = StringField('Full name', validators=[DataRequired(), Length(max=120)])
    user_email = EmailField('Email', validators=[DataRequired(), Email(), Length(max=200)])
    user_dob = DateField('Date of birth', validators=[Optional()])
    mobile = StringField('Mobile', validators=[Optional(), Length(max=20)])
    about_us = TextAreaField('About', validators=[Optional(), Length(max=2000)])
    user_photo = FileField('Photo')


class RegisterForm(_PersonFieldsMixin, ApiForm):
    API_FIELDS = {
        'employee_code': 'EmployeeCode',
        'org_code': 'OrgCode',
        'user_name': 'UserName',
        'user_email': 'UserEmail',
        'user_dob': 'UserDOB',
        'login_id': 'LoginId',
        'password': 'LoginPwd',
        'mobile': 'Mobile',
        'about_us': 'AboutUs',
    }

    employee_code = StringField('Employee code', validators=[Optional(), Length(max=40)])
    org_code = IntegerField('Organization code', validators=[DataRequired(), NumberRange(min=1)])
    login_id = StringField('Login ID', validators=[DataRequired(), Length(min=3, max=80)])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=8, max=200)])


class ProfileForm(_PersonFieldsMixin, ApiForm):
    API_FIELDS = {
        'user_name': 'UserName',
        'user_email': 'UserEmail',
        'user_dob': 'UserDOB',
        'mobile': 'Mobile',
        'about_us': 'AboutUs',
    }


class BlogCategoryForm(ApiForm):
    API_FIELDS = {
        'category_name': 'CategoryName',
        'description': 'Description',
        'img': 'Img',
        'is_active': 'IsActive',
    }

    category_name = StringField('Category name', validators=[DataRequired(), Length(max=150)])
    description = TextAreaField('Description', validators=[Optional(), Length(max=2000)])
    img = StringField('Image path', validators=[Optional(), Length(max=500)])
    image = FileField('Upload image')
    is_active = BooleanField('Active', default=True)


class BlogAuthorForm(ApiForm):
    API_FIELDS = {
        'name': 'Name',
        'role': 'Role',
        'bio': 'Bio',
        'img': 'Img',
        'linkedin': 'Linkedin',
        'twitter': 'Twitter',
        'facebook': 'Facebook',
    }

    name = StringField('Name', validators=[DataRequired(), Length(max=150)])
    role = StringField('Role', validators=[Optional(), Length(max=150)])
    bio = TextAreaField('Bio', validators=[Optional(), Length(max=4000)])
    img = StringField('Photo path', validators=[Optional(), Length(max=500)])
    image = FileField('Upload photo')
    linkedin = URLField('LinkedIn', validators=[Optional(), URL(), http_link, Length(max=300)])
    twitter = URLField('Twitter', validators=[Optional(), URL(), http_link, Length(max=300)])
    facebook = URLField('Facebook', validators=[Optional(), URL(), http_link, Length(max=300)])


class JobForm(ApiForm):
    API_FIELDS = {
        'title': 'title',
        'department': 'department',
        'location': 'location',
        'job_type': 'type',
        'description': 'description',
        'responsibilities': 'responsibilities',
        'requirements': 'requirements',
        'benefits': 'benefits',
    }
    RICH_TEXT_FIELDS = ('description', 'responsibilities', 'requirements', 'benefits')

    title = StringField('Title', validators=[DataRequired(), Length(max=200)])
    department = StringField('Department', validators=[DataRequired(), Length(max=120)])
    location = StringField('Location', validators=[DataRequired(), Length(max=120)])
    job_type = SelectField('Type', choices=JOB_TYPE_CHOICES, default='Full-time')
    description = TextAreaField('Description', validators=[DataRequired(), Length(max=20000)])
    responsibilities = TextAreaField('Responsibilities', validators=[Optional(), Length(max=20000)])
    requirements = TextAreaField('Requirements', validators=[Optional(), Length(max=20000)])
    benefits = TextAreaField('Benefits', validators=[Optional(), Length(max=20000)])


class JobApplicationForm(ApiForm):
    API_FIELDS = {
        'job_title': 'jobTitle',
        'name': 'name',
        'email': 'email',
        'phone': 'phone',
        'cover_letter': 'coverLetter',
    }

    job_title = SelectField('Job', coerce=str, validators=[DataRequired()])
    name = StringField('Applicant name', validators=[DataRequired(), Length(max=150)])
    email = EmailField('Email', validators=[DataRequired(), Email(), Length(max=200)])
    phone = StringField('Phone', validators=[DataRequired(), Length(max=20)])
    cover_letter = TextAreaField('Cover letter', validators=[Optional(), Length(max=10000)])
    resume = FileField('Resume (PDF)')


class SubscriberForm(ApiForm):
    API_FIELDS = {'email': 'Email', 'is_active': 'IsActive'}

    email = EmailField('Email', validators=[DataRequired(), Email(), Length(max=200)])
    is_active = BooleanField('Active', default=True)


class NewsletterTemplateForm(ApiForm):
    API_FIELDS = {'name': 'Name', 'subject': 'Subject', 'body': 'Body', 'is_active': 'IsActive'}
    RICH_TEXT_FIELDS = ('body',)

    name = StringField('Template name', validators=[DataRequired(), Length(max=150)])
    subject = StringField('Subject', validators=[DataRequired(), Length(max=250)])
    body = TextAreaField('Email body', validators=[DataRequired(), Length(max=200000)])
    is_active = BooleanField('Active', default=True)


class _NotificationWindowMixin:
    noti_type = SelectField('Type', coerce=int, choices=NOTIFICATION_TYPE_CHOICES, default=NOTIFICATION_TYPE_GENERAL)
    noti_title = StringField('Title', validators=[DataRequired(), Length(max=250)])
    valid_from = DateTimeLocalField('Valid from', format='%Y-%m-%dT%H:%M', validators=[DataRequired()])
    valid_to = DateTimeLocalField('Valid to', format='%Y-%m-%dT%H:%M', validators=[DataRequired()])
    noti_file = URLField('Attachment URL', validators=[Optional(), URL(), http_link, Length(max=500)])
    noti_desc = TextAreaField('Description', validators=[Optional(), Length(max=5000)])

    def validate_valid_to(self, field):
        if self.valid_from.data and field.data and field.data <= self.valid_from.data:
            raise ValidationError('Valid To must be later than Valid From.')


class SystemUpdateForm(_NotificationWindowMixin, ApiForm):
    API_FIELDS = {
        'org_code': 'OrgCode',
        'noti_type': 'NotiType',
        'noti_title': 'NotiTitle',
        'valid_from': 'ValidFrom',
        'valid_to': 'ValidTo',
        'noti_file': 'NotiFile',
        'noti_desc': 'NotiDesc',
    }

    org_code = SelectField('Organization', coerce=_coerce_optional_int, validators=[DataRequired()])


class OrgUpdateForm(_NotificationWindowMixin, ApiForm):
    API_FIELDS = {
        'noti_type': 'NotiType',
        'user_id': 'UserId',
        'noti_title': 'NotiTitle',
        'valid_from': 'ValidFrom',
        'valid_to': 'ValidTo',
        'noti_file': 'NotiFile',
        'noti_desc': 'NotiDesc',
    }

    user_id = SelectField('User (personal notices)', coerce=_coerce_optional_int, validate_choice=False)

    def validate_user_id(self, field):
        if self.noti_type.data == NOTIFICATION_TYPE_PERSONAL and not field.data:
            raise ValidationError('Select the user who should receive this personal notice.')

    def to_payload(self):
        payload = super().to_payload()
        if payload.get('NotiType') != NOTIFICATION_TYPE_PERSONAL or not payload.get('UserId'):
            payload['UserId'] = 0
        return payload


class ProductCategoryForm(ApiForm):
    API_FIELDS = {'cat_name': 'CatName', 'description': 'Description', 'status': 'Status'}

    cat_name = StringField('Category name', validators=[DataRequired(), Length(max=150)])
    description = TextAreaField('Description', validators=[Optional(), Length(max=2000)])
    image = FileField('Image')
    status = BooleanField('Active', default=True)


class ProductSubCategoryForm(ApiForm):
    API_FIELDS = {
        'cat_id': 'CatId',
        'sub_cat_name': 'SubCatName',
        'description': 'Description',
        'status': 'Status',
    }

    cat_id = SelectField('Category', coerce=_coerce_optional_int, validators=[DataRequired()])
    sub_cat_name = StringField('Sub-category name', validators=[DataRequired(), Length(max=150)])
    description = TextAreaField('Description', validators=[Optional(), Length(max=2000)])
    image = FileField('Image')
    status = BooleanField('Active', default=True)


class ProductForm(ApiForm):
    API_FIELDS = {
        'code': 'Code',
        'cat_id': 'CatId',
        'sub_cat_id': 'SubCatId',
        'product_name': 'ProductName',
        'description': 'Description',
        'model_no': 'ModelNo',
        'brand': 'Brand',
        'uses': 'Uses',
        'warranty': 'Warranty',
        'delivery': 'Delivery',
        'details': 'Details',
        'status': 'Status',
    }
    RICH_TEXT_FIELDS = ('details',)

    code = StringField('Product code', validators=[DataRequired(), Length(max=60)])
    product_name = StringField('Product name', validators=[DataRequired(), Length(max=200)])
    cat_id = SelectField('Category', coerce=_coerce_optional_int, validators=[DataRequired()])
    # Choices depend on the selected category and are filled client-side.
    sub_cat_id = SelectField('Sub-category', coerce=_coerce_optional_int, validate_choice=False)
    description = TextAreaField('Description', validators=[Optional(), Length(max=5000)])
    model_no = StringField('Model no.', validators=[Optional(), Length(max=100)])
    brand = StringField('Brand', validators=[Optional(), Length(max=100)])
    uses = TextAreaField('Uses', validators=[Optional(), Length(max=5000)])
    warranty = StringField('Warranty', validators=[Optional(), Length(max=200)])
    delivery = StringField('Delivery', validators=[Optional(), Length(max=200)])
    details = TextAreaField('Details', validators=[Optional(), Length(max=50000)])
    image1 = FileField('Image 1')
    image2 = FileField('Image 2')
    image3 = FileField('Image 3')
    image4 = FileField('Image 4')
    brochure = FileField('Brochure (PDF)')
    status = BooleanField('Active', default=True)


class OrganizationForm(ApiForm):
    API_FIELDS = {
        'org_name': 'OrgName',
        'org_type': 'OrgType',
        'contact_person': 'ContactPerson',
        'email': 'Email',
        'phone': 'Phone',
        'mobile': 'Mobile',
        'web': 'Web',
        'address1': 'Address1',
        'city': 'City',
        'state': 'State',
        'country': 'Country',
        'est_year': 'EstYear',
        'admin_email': 'AdminEmail',
        'status': 'Status',
    }

    org_name = StringField('Organization name', validators=[DataRequired(), Length(max=200)])
    org_type = StringField('Organization type', validators=[Optional(), Length(max=80)])
    contact_person = StringField('Contact person', validators=[Optional(), Length(max=150)])
    email = EmailField('Email', validators=[DataRequired(), Email(), Length(max=200)])
    phone = StringField('Phone', validators=[Optional(), Length(max=20)])
    mobile = StringField('Mobile', validators=[Optional(), Length(max=20)])
    web = URLField('Website', validators=[Optional(), URL(), http_link, Length(max=300)])
    address1 = StringField('Address', validators=[Optional(), Length(max=300)])
    city = StringField('City', validators=[Optional(), Length(max=100)])
    state = StringField('State', validators=[Optional(), Length(max=100)])
    country = StringField('Country', validators=[Optional(), Length(max=100)])
    est_year = IntegerField('Established', validators=[Optional(), NumberRange(min=1800, max=2100)])
    admin_email = EmailField('Admin email', validators=[Optional(), Email(), Length(max=200)])
    status = SelectField('Status', choices=RECORD_STATUS_CHOICES, default='Active')
    logo = FileField('Logo')


class LicenseForm(ApiForm):
    API_FIELDS = {
        'license_name': 'LicenseName',
        'org_code': 'OrgCode',
        'max_users': 'MaxUsers',
        'max_visitors': 'MaxVisitors',
        'status': 'Status',
    }

    license_name = StringField('License name', validators=[DataRequired(), Length(max=150)])
    org_code = IntegerField('Organization code', validators=[DataRequired(), NumberRange(min=1)])
    max_users = IntegerField('Max users', validators=[DataRequired(), NumberRange(min=1)])
    max_visitors = IntegerField('Max visitors', validators=[Optional(), NumberRange(min=0)], default=0)
    status = SelectField('Status', choices=LICENSE_STATUS_CHOICES, default='Active')


class OrgModuleForm(ApiForm):
    API_FIELDS = {
        'org_code': 'OrgCode',
        'module_id': 'ModuleId',
        'module_code': 'ModuleCode',
        'status': 'Status',
    }

    org_code = SelectField('Organization', coerce=_coerce_optional_int, validators=[DataRequired()])
    module_id = SelectField('Module', coerce=_coerce_optional_int, validators=[DataRequired()])
    module_code = StringField(
        'Module code',
        validators=[Optional(), Length(max=40), Regexp(r'^[A-Za-z0-9_-]*$', message='Module codes are alphanumeric.')],
    )
    status = SelectField('Status', choices=RECORD_STATUS_CHOICES, default='Active')


class TermsEntryForm(ApiForm):
    API_FIELDS = {'question': 'question', 'answer': 'answer', 'is_active': 'isActive'}
    RICH_TEXT_FIELDS = ('answer',)

    question = StringField('Question', validators=[DataRequired(), Length(max=500)])
    answer = TextAreaField('Answer', validators=[DataRequired(), Length(max=50000)])
    is_active = BooleanField('Active', default=True)


class FaqEntryForm(TermsEntryForm):
    API_FIELDS = {'title': 'title', **TermsEntryForm.API_FIELDS}

    title = StringField('Title', validators=[Optional(), Length(max=200)])


class OrgUserForm(_PersonFieldsMixin, ApiForm):
    API_FIELDS = {
        'employee_code': 'EmployeeCode',
        'user_name': 'UserName',
        'user_email': 'UserEmail',
        'user_dob': 'UserDOB',
        'login_id': 'LoginId',
        'password': 'LoginPwd',
        'mobile': 'Mobile',
        'about_us': 'AboutUs',
    }

    employee_code = StringField('Employee code', validators=[Optional(), Length(max=40)])
    login_id = StringField('Login ID', validators=[DataRequired(), Length(min=3, max=80)])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=8, max=200)])


class OrgUserEditForm(OrgUserForm):
    API_FIELDS = {**OrgUserForm.API_FIELDS, 'status': 'Status', 'existing_photo': 'ExistingUserPhoto'}

    password = PasswordField('New password', validators=[Optional(), Length(min=8, max=200)])
    status = SelectField('Status', choices=RECORD_STATUS_CHOICES, default='Active')
    existing_photo = HiddenField()

    def load_record(self, record):
        super().load_record(record)
        # A blank password keeps the current one.
        self.password.data = ''
        self.existing_photo.data = record.get('UserPhoto') or ''
        return self


class EnquiryForm(ApiForm):
    API_FIELDS = {
        'name': 'Name',
        'email': 'Email',
        'mobile': 'Mobile',
        'whatsapp': 'Whatsapp',
        'ticket_source': 'TicketSource',
        'message': 'Message',
    }

    name = StringField('Name', validators=[DataRequired(), Length(max=150)])
    email = EmailField('Email', validators=[DataRequired(), Email(), Length(max=200)])
    mobile = StringField('Mobile', validators=[Optional(), Length(max=20)])
    whatsapp = StringField('WhatsApp', validators=[Optional(), Length(max=20)])
    ticket_source = SelectField(
        'Source',
        choices=[('', 'Select a source')] + [(source, source) for source in ENQUIRY_SOURCE_CHOICES],
        validators=[DataRequired()],
    )
    message = TextAreaField('Message', validators=[DataRequired(), Length(max=5000)])


class EnquiryStatusForm(ApiForm):
    API_FIELDS = {'status': 'Status'}

    status = BooleanField('Active')
