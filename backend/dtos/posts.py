"""Request DTOs for the blog post endpoints."""
from starlette.datastructures import UploadFile

from mapper import MappableDTO


class CreateBlogPostDTO(MappableDTO):
    """Multipart form with an optional cover image and file attachments."""
    title: str
    content: str
    category: str
    tags: list
    featured_image: UploadFile | None = None
    attachments: list = []
    published: bool
    publish_date: str | None = None

    def rules(self):
        return {
            "title": "required|string|max:200",
            "content": "required|string|min:100",
            "category": "required|string|in:technology,lifestyle,business,health",
            "tags": "required|array|min:1|max:5",
            "tags.*": "string|max:30",
            "featured_image": "nullable|image|max:5120|mimes:jpg,jpeg,png,webp",
            "attachments": "nullable|array|max:3",
            "attachments.*": "file|max:10240|mimes:pdf,doc,docx,zip",
            "published": "required|boolean",
            "publish_date": "nullable|required_if:published,true|date|after:now",
        }

    def messages(self):
        return {
            "title.max": "The title may not exceed 200 characters.",
            "content.min": "The content must be at least 100 characters.",
            "category.in": "Choose a valid category.",
            "tags.min": "Add at least one tag.",
            "tags.max": "At most 5 tags.",
            "featured_image.max": "The featured image may not exceed 5MB.",
            "attachments.max": "At most 3 attachments.",
            "attachments.*.max": "Each attachment may not exceed 10MB.",
            "publish_date.after": "The publish date must be in the future.",
        }

    def attributes(self):
        return {
            "title": "title",
            "content": "content",
            "category": "category",
            "tags": "tags",
            "featured_image": "featured image",
            "attachments": "attachments",
            "published": "published",
            "publish_date": "publish date",
        }
