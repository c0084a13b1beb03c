"""异常定义"""


class NewsflowError(Exception):
    """所有 newsflow 异常的基类"""


class ConfigurationError(NewsflowError):
    """配置缺失或非法"""


class NotFoundError(NewsflowError):
    """按 id 查找的记录不存在"""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class NoCategoriesError(NewsflowError):
    """分类表为空，无法为自动发布的文章选择分类（部署配置错误，不可重试）"""

    def __init__(self) -> None:
        super().__init__("No categories found in database")


class InvalidStateError(NewsflowError):
    """队列条目当前阶段不允许该操作"""

    def __init__(self, queue_id: str, stage: str, action: str) -> None:
        super().__init__(f"Cannot {action} queue item {queue_id} in stage {stage}")
        self.queue_id = queue_id
        self.stage = stage


class AIRewriteError(NewsflowError):
    """AI 改写失败或返回内容不可用"""


class SocialPostError(NewsflowError):
    """社交平台发帖失败"""


class StorageError(NewsflowError):
    """存储文件无法读取或格式损坏"""
