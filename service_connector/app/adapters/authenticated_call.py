"""
Composition of token lifecycle and retry handling around a provider operation.
"""

from typing import Awaitable, Callable, Optional, TypeVar, TYPE_CHECKING

from shared.errors import ClassifiedError, ErrorKind, ProviderError
from shared.error_classifier import ErrorClassifier
from shared.logging import get_logger, mask_identifier
from shared.retry import RetryConfig, RetryExecutor

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..auth.token_manager import TokenLifecycleManager

T = TypeVar("T")

Operation = Callable[[str], Awaitable[T]]


class AuthenticatedCall:
    """Runs ``operation(access_token)`` for an identity with token refresh and retries.

    Transient failures are retried by the executor. If the provider still rejects
    the access token after that, the token is force-refreshed and the operation
    gets exactly one more pass. Failures that are not already access layer errors
    surface as ``ProviderError`` carrying their classification.
    """

    def __init__(self,
                 token_manager: "TokenLifecycleManager",
                 *,
                 retry_executor: Optional[RetryExecutor] = None,
                 retry_config: Optional[RetryConfig] = None,
                 classifier: Optional[ErrorClassifier] = None):
        self.token_manager = token_manager
        self.classifier = classifier or ErrorClassifier()
        self.retry_executor = retry_executor or RetryExecutor(self.classifier)
        self.retry_config = retry_config or RetryConfig()
        self.logger = get_logger("connector.authenticated_call")

    async def __call__(self,
                       identity_id: str,
                       operation: Operation,
                       retry_config: Optional[RetryConfig] = None) -> T:
        config = retry_config or self.retry_config

        try:
            try:
                return await self._run(identity_id, operation, config, force_refresh=False)
            except ClassifiedError:
                raise
            except Exception as exc:
                if self.classifier.classify(exc).kind != ErrorKind.UNAUTHORIZED:
                    raise

            self.logger.info(
                "Access token rejected, forcing refresh",
                identity=mask_identifier(identity_id),
            )
            return await self._run(identity_id, operation, config, force_refresh=True)

        except ClassifiedError:
            raise
        except Exception as exc:
            classification = self.classifier.classify(exc)
            self.logger.warning(
                "Provider call failed",
                identity=mask_identifier(identity_id),
                kind=classification.kind.value,
                status_code=classification.status_code,
                provider_code=classification.code,
                request_id=classification.request_id,
            )
            raise ProviderError(classification, operation=getattr(operation, "__name__", None)) from exc

    async def _run(self, identity_id: str, operation: Operation, config: RetryConfig,
                   force_refresh: bool) -> T:
        token = await self.token_manager.get_valid_token(identity_id, force_refresh=force_refresh)
        return await self.retry_executor.execute(lambda: operation(token), config)
