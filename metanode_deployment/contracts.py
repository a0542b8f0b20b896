from enum import Enum
from typing import List

from ape.contracts import ContractContainer

from metanode_deployment.constants import V1, V2
from metanode_deployment.utils import get_contract_container


class StakeContract(Enum):
    """Contracts known to the stake deployment, keyed by symbolic identifier."""

    TOKEN = "MetaNode"
    STAKE = "MetaNodeStake"
    STAKE_V2 = "MetaNodeStakeV2"
    PROXY = "ERC1967Proxy"  # OpenZeppelin dependency

    @property
    def contract_name(self) -> str:
        return self.value

    @property
    def container(self) -> ContractContainer:
        """Returns the compiled contract container."""
        return get_contract_container(self.value)

    @classmethod
    def names(cls) -> List[str]:
        return [member.value for member in cls]

    @classmethod
    def from_name(cls, contract_name: str) -> "StakeContract":
        try:
            return cls(contract_name)
        except ValueError:
            raise ValueError(
                f"Unknown contract '{contract_name}'; expected one of {cls.names()}"
            ) from None


# staking implementations, in upgrade order
STAKE_IMPLEMENTATIONS = {
    V1: StakeContract.STAKE,
    V2: StakeContract.STAKE_V2,
}
