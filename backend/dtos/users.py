"""Request DTOs for the user endpoints."""
from starlette.datastructures import UploadFile

from mapper import MappableDTO


class CreateUserDTO(MappableDTO):
    name: str
    email: str
    password: str
    age: int
    phone: str | None = None
    avatar: UploadFile | None = None
    interests: list

    def rules(self):
        return {
            "name": "required|string|max:255",
            "email": "required|email|unique:users,email",
            "password": "required|string|min:8|max:72|confirmed",
            "age": "required|integer|min:18|max:120",
            "phone": "nullable|string|regex:/^[0-9]{9,15}$/",
            "avatar": "nullable|file|image|max:2048|mimes:jpg,jpeg,png",
            "interests": "required|array|min:1",
            "interests.*": "string|max:50",
        }

    def messages(self):
        return {
            "email.unique": "This email address is already in use.",
            "age.min": "You must be at least 18 years old to register.",
            "password.min": "The password must be at least 8 characters.",
            "password.confirmed": "The password confirmation does not match.",
            "avatar.max": "The avatar may not be larger than 2MB.",
            "interests.min": "Pick at least one interest.",
        }

    def attributes(self):
        return {
            "name": "full name",
            "email": "email address",
            "password": "password",
            "age": "age",
            "phone": "phone number",
            "avatar": "profile picture",
            "interests": "interests",
        }


class UpdateUserDTO(MappableDTO):
    name: str
    email: str
    age: int
    phone: str | None = None

    def rules(self):
        return {
            "name": "required|string|max:255",
            "email": "required|email",
            "age": "required|integer|min:18|max:120",
            "phone": "nullable|string|regex:/^[0-9]{9,15}$/",
        }

    def messages(self):
        return {
            "age.min": "You must be at least 18 years old.",
        }

    def attributes(self):
        return {
            "name": "full name",
            "email": "email address",
            "age": "age",
            "phone": "phone number",
        }


class UserFilterDTO(MappableDTO):
    """Query-string filters for listing users."""
    search: str | None = None
    minAge: int | None = None
    maxAge: int | None = None
    sortBy: str | None = None
    sortDirection: str | None = None
    perPage: int | None = None
    active: bool | None = None

    def rules(self):
        return {
            "search": "nullable|string|max:255",
            "minAge": "nullable|integer|min:0|max:120",
            "maxAge": "nullable|integer|min:0|max:120|gte:minAge",
            "sortBy": "nullable|string|in:name,email,age,created_at",
            "sortDirection": "nullable|string|in:asc,desc",
            "perPage": "nullable|integer|min:1|max:100",
            "active": "nullable|boolean",
        }

    def messages(self):
        return {
            "maxAge.gte": "The maximum age must be greater than or equal to the minimum age.",
            "sortBy.in": "You can only sort by: name, email, age, created_at.",
            "perPage.max": "At most 100 results per page.",
        }

    def attributes(self):
        return {
            "search": "search",
            "minAge": "minimum age",
            "maxAge": "maximum age",
            "sortBy": "sort by",
            "sortDirection": "sort direction",
            "perPage": "results per page",
            "active": "active",
        }


class BulkCreateUsersDTO(MappableDTO):
    users: list

    def rules(self):
        return {
            "users": "required|array|min:1|max:100",
            "users.*.name": "required|string|max:255",
            "users.*.email": "required|email|unique:users,email",
            "users.*.age": "required|integer|min:18|max:120",
            "users.*.phone": "nullable|string",
        }

    def messages(self):
        return {
            "users.min": "Provide at least one user.",
            "users.max": "You can create at most 100 users at once.",
            "users.*.email.unique": "The email address :input is already taken.",
        }

    def attributes(self):
        return {
            "users": "users",
            "users.*.name": "name",
            "users.*.email": "email",
            "users.*.age": "age",
        }
