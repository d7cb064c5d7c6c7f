from drive_api.db.base import Base
from drive_api.models.folder import Folder
from drive_api.models.file import File
from drive_api.models.file_share import FileShare
