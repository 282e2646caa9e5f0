from dtos.posts import CreateBlogPostDTO
from dtos.users import BulkCreateUsersDTO, CreateUserDTO, UpdateUserDTO, UserFilterDTO

__all__ = [
    "CreateUserDTO", "UpdateUserDTO", "UserFilterDTO", "BulkCreateUsersDTO",
    "CreateBlogPostDTO",
]
