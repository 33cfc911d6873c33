from .common import AssetType, BaseResponse, DocType, LedgerOperationResponse
from .documents import CommentInfo, CtiInfo, ModelInfo
from .points import AccountPointInfo, PointTransaction
from .incentive import DocIncentiveInfo
from .tx import TxMsgRawData
