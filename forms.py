"""Request validation for the JSON API.

Forms are fed from decoded JSON bodies instead of ``request.form`` so the
same WTForms validators and field-level error messages apply.
"""

from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import (
    FieldList,
    IntegerField,
    PasswordField,
    SelectField,
    StringField,
    TextAreaField,
)
from wtforms.validators import (
    DataRequired,
    Email,
    Length,
    NumberRange,
    Optional,
    Regexp,
    ValidationError,
)

from models.task import TaskPriority, TaskStatus
from utils.dates import parse_iso

STATUS_CHOICES = [(status.value, status.value) for status in TaskStatus]
PRIORITY_CHOICES = [(priority.value, priority.value) for priority in TaskPriority]


def _json_formdata(payload) -> MultiDict:
    data = MultiDict()
    if not isinstance(payload, dict):
        return data
    for key, value in payload.items():
        if isinstance(value, list):
            # FieldList reads entries as "<name>-<index>"
            for index, item in enumerate(value):
                if item is not None and not isinstance(item, (dict, list)):
                    data.add(f"{key}-{index}", str(item))
            continue
        if value is None or isinstance(value, dict):
            continue
        data.add(key, value if isinstance(value, str) else str(value))
    return data


class JsonForm(FlaskForm):
    class Meta:
        csrf = False

    @classmethod
    def from_json(cls, payload, **kwargs):
        return cls(formdata=_json_formdata(payload), **kwargs)


class RegisterForm(JsonForm):
    username = StringField(
        "Username",
        validators=[
            DataRequired(message="Username is required."),
            Length(max=80, message="Username must be 80 characters or fewer."),
            Regexp(
                r"^[A-Za-z0-9_.-]+$",
                message="Username may only include letters, numbers, dots, hyphens, and underscores.",
            ),
        ],
    )
    name = StringField("Name", [DataRequired(message="Name is required.")])
    email = StringField("Email", [DataRequired(message="Email is required."), Email()])
    password = PasswordField(
        "Password",
        validators=[
            DataRequired(message="Password is required."),
            Length(min=8, message="Password must be at least 8 characters."),
        ],
    )

    def validate_username(self, field):
        from models.user import User

        if User.query.filter_by(username=field.data).first():
            raise ValidationError("This username is already in use.")

    def validate_email(self, field):
        from models.user import User

        if User.query.filter_by(email=field.data).first():
            raise ValidationError("This email is already in use.")


class LoginForm(JsonForm):
    username = StringField("Username", [DataRequired()])
    password = PasswordField("Password", [DataRequired()])


class GitHubConnectForm(JsonForm):
    accessToken = PasswordField("GitHub Access Token", [DataRequired(message="Access token is required.")])


class GitHubSyncForm(JsonForm):
    repoOwner = StringField("Repository Owner", [DataRequired(message="repoOwner is required.")])
    repoName = StringField("Repository Name", [DataRequired(message="repoName is required.")])


class TaskCreateForm(JsonForm):
    title = StringField(
        "Title",
        validators=[
            DataRequired(message="Title is required."),
            Length(min=3, max=255, message="Title must be between 3 and 255 characters."),
        ],
    )
    description = TextAreaField("Description", [Optional()])
    priority = SelectField("Priority", choices=PRIORITY_CHOICES, default=TaskPriority.MEDIUM.value)
    status = SelectField(
        "Status",
        choices=STATUS_CHOICES,
        default=TaskStatus.OPEN.value,
    )
    assignedTo = IntegerField("Assignee", [Optional()])
    dueDate = StringField("Due Date", [Optional()])

    def validate_assignedTo(self, field):
        _validate_existing_user(field)

    def validate_dueDate(self, field):
        if not field.data:
            return
        try:
            parse_iso(field.data)
        except ValueError as exc:
            raise ValidationError("Due date must be an ISO-8601 datetime.") from exc


class TaskStatusForm(JsonForm):
    taskId = IntegerField("Task", [DataRequired(message="taskId is required.")])
    status = SelectField(
        "Status",
        choices=STATUS_CHOICES,
        validators=[DataRequired(message="Status is required.")],
        validate_choice=True,
    )


class MarkReadForm(JsonForm):
    notificationId = IntegerField("Notification", [DataRequired(message="notificationId is required.")])


def _validate_existing_user(field):
    from database import db
    from models.user import User

    if field.data is not None and db.session.get(User, field.data) is None:
        raise ValidationError("Assignee does not exist.")


class TaskReassignForm(JsonForm):
    taskId = IntegerField("Task", [DataRequired(message="taskId is required.")])
    # Omitted or null clears the assignee
    assignedTo = IntegerField("Assignee", [Optional()])

    def validate_assignedTo(self, field):
        _validate_existing_user(field)


class TaskPriorityForm(JsonForm):
    taskId = IntegerField("Task", [DataRequired(message="taskId is required.")])
    priority = SelectField(
        "Priority",
        choices=PRIORITY_CHOICES,
        validators=[DataRequired(message="Priority is required.")],
        validate_choice=True,
    )


BULK_ACTIONS = ["delete", "changeStatus", "changePriority", "reassign"]


class TaskBulkForm(JsonForm):
    """Bulk action over several tasks.

    The action's argument arrives in a nested ``payload`` object, e.g.
    ``{"taskIds": [1, 2], "action": "changeStatus", "payload": {"status": "DONE"}}``.
    """

    taskIds = FieldList(
        IntegerField("Task", [DataRequired(message="Task ids must be integers.")]),
        min_entries=1,
    )
    action = SelectField(
        "Action",
        choices=[(action, action) for action in BULK_ACTIONS],
        validators=[DataRequired(message="action is required.")],
        validate_choice=True,
    )
    status = SelectField("Status", choices=STATUS_CHOICES, validators=[Optional()], validate_choice=True)
    priority = SelectField("Priority", choices=PRIORITY_CHOICES, validators=[Optional()], validate_choice=True)
    assignedTo = IntegerField("Assignee", [Optional()])

    @classmethod
    def from_json(cls, payload, **kwargs):
        if isinstance(payload, dict) and isinstance(payload.get("payload"), dict):
            payload = {**payload["payload"], **{k: v for k, v in payload.items() if k != "payload"}}
        return super().from_json(payload, **kwargs)

    @property
    def task_ids(self) -> list[int]:
        return list(dict.fromkeys(entry.data for entry in self.taskIds.entries))

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators=extra_validators):
            return False
        action = self.action.data
        if action == "changeStatus" and not self.status.data:
            self.status.errors.append("Status is required for changeStatus.")
            return False
        if action == "changePriority" and not self.priority.data:
            self.priority.errors.append("Priority is required for changePriority.")
            return False
        return True


class UserSearchForm(JsonForm):
    page = IntegerField("Page", [Optional(), NumberRange(min=1, message="page must be at least 1.")], default=1)
    pageSize = IntegerField(
        "Page Size",
        [Optional(), NumberRange(min=1, max=100, message="pageSize must be between 1 and 100.")],
        default=50,
    )
    search = StringField("Search", [Optional(), Length(max=120)])
