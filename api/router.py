"""Aggregate of the versioned resource clients."""

from api.client import ApiClient
from api.v1.ai import AiApi
from api.v1.contracts import ContractsApi
from api.v1.files import FilesApi
from api.v1.interviews import InterviewsApi
from api.v1.messages import MessagesApi
from api.v1.projects import ProjectsApi
from api.v1.tasks import TasksApi


class BackendApi:
    """One client per backend resource, sharing a single ApiClient."""

    def __init__(self, client: ApiClient):
        self.client = client
        self.projects = ProjectsApi(client)
        self.messages = MessagesApi(client)
        self.tasks = TasksApi(client)
        self.files = FilesApi(client)
        self.contracts = ContractsApi(client)
        self.interviews = InterviewsApi(client)
        self.ai = AiApi(client)

    async def aclose(self) -> None:
        await self.client.aclose()
