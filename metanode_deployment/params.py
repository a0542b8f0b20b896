import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, Optional

from ape import networks
from ape.api import AccountAPI, ReceiptAPI
from ape.contracts.base import ContractContainer, ContractInstance, ContractTransactionHandler
from ape.utils import ZERO_ADDRESS
from ape_accounts import KeyfileAccount
from eth_typing import ABI, ChecksumAddress
from ethpm_types import MethodABI
from web3.auto import w3

from metanode_deployment.confirm import _confirm_resolution, _continue
from metanode_deployment.contracts import StakeContract
from metanode_deployment.networks import get_deployer_account
from metanode_deployment.utils import (
    _load_yaml,
    check_plugins,
    get_cache_dir,
    get_implementation_address,
    validate_config,
    verify_contracts,
)

CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"
CONTRACT_PROXY_PARAMETER_KEY = "proxy"
PROXY_INITIALIZER_PARAMETER_KEY = "initializer"
PROXY_INITIALIZER_METHOD_KEY = "method"
DEFAULT_INITIALIZER_METHOD = "initialize"


class VariableContext:
    def __init__(
        self,
        contract_names: List[str],
        contract_name: str,
        constants: typing.Dict[str, Any] = None,
        deployments: typing.Dict[str, ContractInstance] = None,
        account: Optional[AccountAPI] = None,
    ):
        self.contract_names = contract_names or list()
        self.contract_name = contract_name
        self.constants = constants or dict()
        # shared with the deployer; filled in as contracts are deployed
        self.deployments = deployments if deployments is not None else dict()
        self.account = account


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    def __init__(self, context: VariableContext):
        self.account = context.account

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self) -> Any:
        if self.account is None:
            return ZERO_ADDRESS
        return self.account.address


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise ValueError(f"Constant '{constant_name}' not found in deployment file.")

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self) -> Any:
        return self.constant_value


class ContractName(Variable):
    def __init__(self, contract_name: str, context: VariableContext):
        if contract_name not in context.contract_names:
            raise ValueError(f"Contract name {contract_name} not found")

        self.contract_name = contract_name
        self.deployments = context.deployments

    def resolve(self) -> Any:
        """Resolves a contract address; proxied contracts resolve to their proxy."""
        contract_instance = self.deployments.get(self.contract_name)
        if contract_instance is None:
            # not deployed yet - eager validation
            return ZERO_ADDRESS
        return contract_instance.address


def _resolve_param(value: Any) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v) for v in value]

    if isinstance(value, Variable):
        return value.resolve()

    return value  # literally a value


def _resolve_params(parameters: OrderedDict) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = _resolve_param(value)

    return resolved_parameters


def _variable_from_value(variable: Any, context: VariableContext) -> Variable:
    variable = variable.strip(Variable.VARIABLE_PREFIX)
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount(context)
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return ContractName(variable, context)


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, variable_context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


def _process_raw_values(values: OrderedDict, variable_context: VariableContext) -> OrderedDict:
    processed_parameters = OrderedDict()
    for name, value in values.items():
        processed_parameters[name] = _process_raw_value(value, variable_context)

    return processed_parameters


def _get_contract_names(config: typing.Dict) -> List[str]:
    contract_names = list()
    for contract_info in config["contracts"]:
        if isinstance(contract_info, str):
            contract_names.append(contract_info)
        elif isinstance(contract_info, dict):
            contract_names.extend(list(contract_info.keys()))
        else:
            raise ValueError("Malformed parameters YAML.")

    for contract_name in contract_names:
        StakeContract.from_name(contract_name)  # rejects unknown contracts

    return contract_names


def _get_contract_data(contract_info: Any) -> typing.Tuple[str, Dict]:
    """Returns the contract name and its (possibly empty) parameter data."""
    if isinstance(contract_info, str):
        return contract_info, dict()
    if not isinstance(contract_info, dict) or len(contract_info) != 1:
        raise ValueError("Malformed parameters YAML.")
    contract_name = list(contract_info.keys())[0]  # only one entry
    return contract_name, contract_info[contract_name] or dict()


def _validate_method_args(
    method_abis: List[MethodABI], args: typing.Sequence[Any]
) -> typing.Dict[str, Any]:
    """Validates the transaction arguments against the function ABI."""
    if len(method_abis) == 0:
        raise ValueError("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = {}
        for arg, abi_input in zip(args, abi.inputs):
            if not w3.is_encodable(abi_input.type, arg):
                break
            named_args[abi_input.name] = arg
        else:
            return named_args
    raise ValueError(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


def _validate_abi_inputs(
    contract_name: str,
    abi_inputs: List[Any],
    resolved_parameters: OrderedDict,
    kind: str = "constructor",
) -> None:
    """Validates named parameters against ABI inputs: count, order, names and types."""
    if len(resolved_parameters) != len(abi_inputs):
        raise ConstructorParameters.Invalid(
            f"{kind.capitalize()} parameters length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(resolved_parameters)}."
        )
    if not abi_inputs:
        return  # no parameters

    codex = enumerate(zip(abi_inputs, resolved_parameters.items()), start=0)
    for position, (abi_input, resolved_input) in codex:
        name, value = resolved_input
        # validate name
        if abi_input.name != name:
            raise ConstructorParameters.Invalid(
                f"{contract_name} {kind} parameter '{name}' at position {position} does not "
                f"match the expected ABI name '{abi_input.name}'."
            )

        # validate value type
        if not w3.is_encodable(abi_input.type, value):
            raise ConstructorParameters.Invalid(
                f"{kind.capitalize()} param name '{name}' at position {position} has a value "
                f"'{value}' whose type does not match expected ABI type '{abi_input.type}'"
            )


def validate_constructor_parameters(contracts_parameters) -> None:
    """Validates the constructor parameters for all contracts in a single config."""
    for contract, parameters in contracts_parameters.items():
        if not isinstance(parameters, dict):
            # this can happen if the yml file is malformed
            raise ValueError(f"Malformed constructor parameter config for {contract}.")

        resolved_parameters = _resolve_params(parameters=parameters)
        contract_container = StakeContract.from_name(contract).container
        _validate_abi_inputs(
            contract_name=contract,
            abi_inputs=contract_container.constructor.abi.inputs,
            resolved_parameters=resolved_parameters,
        )


class ConstructorParameters:
    """Represents the constructor parameters for a set of contracts."""

    class Invalid(Exception):
        """Raised when the constructor parameters are invalid"""

    def __init__(self, parameters: OrderedDict):
        self.parameters = parameters
        validate_constructor_parameters(parameters)

    @classmethod
    def from_config(
        cls,
        config: typing.Dict,
        deployments: typing.Dict[str, ContractInstance] = None,
        account: Optional[AccountAPI] = None,
    ) -> "ConstructorParameters":
        """Loads the constructor parameters from a deployment config."""
        print("Processing contract constructor parameters...")
        contracts_config = OrderedDict()
        contract_names = _get_contract_names(config)
        constants = config.get("constants")
        for contract_info in config["contracts"]:
            contract_name, contract_data = _get_contract_data(contract_info)
            parameter_values = OrderedDict()
            if CONTRACT_CONSTRUCTOR_PARAMETER_KEY in contract_data:
                parameter_values = _process_raw_values(
                    contract_data[CONTRACT_CONSTRUCTOR_PARAMETER_KEY] or OrderedDict(),
                    VariableContext(
                        contract_names=contract_names,
                        contract_name=contract_name,
                        constants=constants,
                        deployments=deployments,
                        account=account,
                    ),
                )
            contracts_config[contract_name] = parameter_values

        return cls(parameters=contracts_config)

    def resolve(self, contract_name: str) -> OrderedDict:
        """Resolves the constructor parameters for a single contract."""
        resolved_params = _resolve_params(self.parameters.get(contract_name, OrderedDict()))
        return resolved_params


def validate_proxy_info(contracts_proxy_info) -> None:
    """Validates the initializer parameters for all proxied contracts."""
    for contract, proxy_info in contracts_proxy_info.items():
        contract_container = StakeContract.from_name(contract).container
        method_abis = [
            abi
            for abi in contract_container.contract_type.methods
            if abi.name == proxy_info.initializer
        ]
        if not method_abis:
            raise ProxyParameters.Invalid(
                f"{contract} has no initializer method named '{proxy_info.initializer}'"
            )
        resolved_parameters = _resolve_params(proxy_info.initializer_params)
        _validate_abi_inputs(
            contract_name=contract,
            abi_inputs=method_abis[0].inputs,
            resolved_parameters=resolved_parameters,
            kind="initializer",
        )


class ProxyParameters:
    """
    Represents the proxy parameters for contracts that are deployed behind an
    ERC1967 proxy, whose construction calls the contract's initializer.
    """

    class Invalid(Exception):
        """Raised when the proxy parameters are invalid"""

    class ProxyInfo(typing.NamedTuple):
        initializer: str
        initializer_params: OrderedDict

    def __init__(self, contracts_proxy_info: OrderedDict):
        self.contracts_proxy_info = contracts_proxy_info
        validate_proxy_info(contracts_proxy_info)

    @classmethod
    def from_config(
        cls,
        config: typing.Dict,
        deployments: typing.Dict[str, ContractInstance] = None,
        account: Optional[AccountAPI] = None,
    ) -> "ProxyParameters":
        """Loads the proxy parameters from a deployment config."""
        print("Processing proxy parameters...")
        contract_names = _get_contract_names(config)
        constants = config.get("constants")

        contracts_proxy_info = OrderedDict()
        for contract_info in config["contracts"]:
            contract_name, contract_data = _get_contract_data(contract_info)
            if CONTRACT_PROXY_PARAMETER_KEY not in contract_data:
                continue

            proxy_info = cls._generate_proxy_info(
                contract_data,
                VariableContext(
                    contract_names=contract_names,
                    contract_name=contract_name,
                    constants=constants,
                    deployments=deployments,
                    account=account,
                ),
            )
            contracts_proxy_info[contract_name] = proxy_info

        return cls(contracts_proxy_info=contracts_proxy_info)

    def contract_needs_proxy(self, contract_name) -> bool:
        proxy_info = self.contracts_proxy_info.get(contract_name)
        return proxy_info is not None

    def resolve(self, contract_name: str) -> typing.Tuple[str, OrderedDict]:
        """Resolves the initializer name and parameters for a single contract."""
        proxy_info = self.contracts_proxy_info.get(contract_name)
        if not proxy_info:
            raise ValueError(f"Unexpected contract to proxy: {contract_name}")

        resolved_params = _resolve_params(parameters=proxy_info.initializer_params)
        return proxy_info.initializer, resolved_params

    @classmethod
    def _generate_proxy_info(cls, contract_data, variable_context: VariableContext) -> ProxyInfo:
        proxy_data = contract_data[CONTRACT_PROXY_PARAMETER_KEY] or dict()
        if "_logic" in proxy_data or "implementation" in proxy_data:
            raise cls.Invalid(
                "The implementation cannot be specified: it is implicitly "
                "the contract being proxied"
            )

        initializer = proxy_data.get(PROXY_INITIALIZER_METHOD_KEY, DEFAULT_INITIALIZER_METHOD)
        initializer_data = proxy_data.get(PROXY_INITIALIZER_PARAMETER_KEY) or OrderedDict()
        processed_values = _process_raw_values(initializer_data, variable_context)
        return cls.ProxyInfo(initializer=initializer, initializer_params=processed_values)


class Transactor:
    """
    Represents an ape account plus validated/annotated transaction execution.
    """

    def __init__(
        self,
        account: typing.Optional[AccountAPI] = None,
        autosign: bool = False,
        gas_price: Optional[str] = None,
    ):
        if account is None:
            self._account = get_deployer_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
            if isinstance(self._account, KeyfileAccount):
                self._account.set_autosign(True)
        self._autosign = autosign
        self._gas_price = gas_price

    def get_account(self) -> AccountAPI:
        """Returns the transactor account."""
        return self._account

    def _get_fee_kwargs(self) -> typing.Dict[str, Any]:
        if self._gas_price is None:
            return dict()
        return {"gas_price": self._gas_price}

    def transact(self, method: ContractTransactionHandler, *args) -> ReceiptAPI:
        named_args = _validate_method_args(method_abis=method.abis, args=args)
        base_message = (
            f"\nTransacting {method.contract.contract_type.name}"
            f"[{method.contract.address[:10]}].{method}"
        )
        if named_args:
            pretty_args = "\n\t".join(f"{k}={v}" for k, v in named_args.items())
            message = f"{base_message} with arguments:\n\t{pretty_args}"
        else:
            message = f"{base_message} with no arguments"
        print(message)
        if not self._autosign:
            _continue()

        result = method(*args, sender=self._account, **self._get_fee_kwargs())
        return result


class Deployer(Transactor):
    """
    Represents an ape account plus
    deployment parameters for a set of contracts, plus validated/annotated execution.
    """

    def __init__(
        self,
        config: typing.Dict,
        path: Path,
        verify: bool,
        account: typing.Optional[AccountAPI] = None,
        autosign: bool = False,
    ):
        deployment_config = config.get("deployment") or dict()
        super().__init__(account, autosign, gas_price=deployment_config.get("gas_price"))

        check_plugins(verify=verify)
        self.path = path
        self.config = config
        self.registry_filepath = validate_config(config=self.config)
        self.cache_dir = get_cache_dir(config=self.config)

        # contract name -> instance (the proxy, for proxied contracts) deployed in this run
        self.deployments: typing.Dict[str, ContractInstance] = dict()
        self.constructor_parameters = ConstructorParameters.from_config(
            self.config, deployments=self.deployments, account=self._account
        )
        self.proxy_parameters = ProxyParameters.from_config(
            self.config, deployments=self.deployments, account=self._account
        )

        self.verify = verify
        self._print_deployment_info()

        if not self._autosign:
            # Confirms the start of the deployment.
            _continue()

    @classmethod
    def from_yaml(cls, filepath: Path, *args, **kwargs) -> "Deployer":
        config = _load_yaml(filepath)
        return cls(config=config, path=filepath, *args, **kwargs)

    @property
    def chain_id(self) -> int:
        return networks.provider.network.chain_id

    def _get_kwargs(self) -> typing.Dict[str, Any]:
        """Returns the deployment kwargs."""
        return {"publish": self.verify, **self._get_fee_kwargs()}

    def deploy(self, contract: StakeContract) -> ContractInstance:
        """
        Deploys a contract with its configured constructor parameters. Proxied
        contracts are wrapped into an ERC1967 proxy and returned at the proxy address.
        """
        contract_name = contract.contract_name
        container = contract.container

        resolved_constructor_params = self.constructor_parameters.resolve(contract_name)
        instance = self._deploy_contract(container, resolved_constructor_params)

        if self.proxy_parameters.contract_needs_proxy(contract_name):
            initializer, resolved_initializer_params = self.proxy_parameters.resolve(
                contract_name=contract_name
            )
            instance = self._deploy_proxy(
                implementation=instance,
                initializer=initializer,
                resolved_initializer_params=resolved_initializer_params,
            )

        self.deployments[contract_name] = instance
        return instance

    def _deploy_contract(
        self, container: ContractContainer, resolved_params: OrderedDict
    ) -> ContractInstance:
        contract_name = container.contract_type.name
        if not self._autosign:
            _confirm_resolution(resolved_params, contract_name, kind="constructor")
        deployment_params = [container, *resolved_params.values()]
        kwargs = self._get_kwargs()

        instance = self._account.deploy(*deployment_params, **kwargs)
        print(f"(i) {contract_name} deployed to: {instance.address}")
        return instance

    def _deploy_proxy(
        self,
        implementation: ContractInstance,
        initializer: str,
        resolved_initializer_params: OrderedDict,
    ) -> ContractInstance:
        target_contract_name = implementation.contract_type.name
        if not self._autosign:
            _confirm_resolution(
                resolved_initializer_params, target_contract_name, kind="initializer"
            )
        method_handler = getattr(implementation, initializer)
        encoded_initializer = method_handler.encode_input(*resolved_initializer_params.values())

        proxy_container = StakeContract.PROXY.container
        print(
            f"\nDeploying {proxy_container.contract_type.name} "
            f"contract to proxy {target_contract_name}."
        )
        proxy_contract = self._deploy_contract(
            proxy_container,
            resolved_params=OrderedDict(
                implementation=implementation.address, _data=encoded_initializer
            ),
        )
        print(
            f"\nWrapping {target_contract_name} into {proxy_contract.contract_type.name} "
            f"at {proxy_contract.address}."
        )
        contract_container = StakeContract.from_name(target_contract_name).container
        return contract_container.at(proxy_contract.address)

    def upgrade(
        self, contract: StakeContract, proxy_address: ChecksumAddress, data=b""
    ) -> ContractInstance:
        """Deploys a new implementation and points the proxy at it."""
        resolved_constructor_params = self.constructor_parameters.resolve(contract.contract_name)
        implementation = self._deploy_contract(contract.container, resolved_constructor_params)
        return self.upgradeTo(implementation, proxy_address, data)

    def upgradeTo(
        self, implementation: ContractInstance, proxy_address: ChecksumAddress, data=b""
    ) -> ContractInstance:
        # raises if there is no EIP1967 implementation slot to upgrade
        current_implementation = get_implementation_address(proxy_address)
        print(
            f"\nUpgrading proxy {proxy_address} from {current_implementation} "
            f"to {implementation.address}."
        )

        # UUPS: the upgrade entrypoint lives on the implementation, called through the proxy
        contract_name = implementation.contract_type.name
        wrapped_instance = StakeContract.from_name(contract_name).container.at(proxy_address)
        self.transact(wrapped_instance.upgradeToAndCall, implementation.address, data)

        self.deployments[contract_name] = wrapped_instance
        return wrapped_instance

    def implementation_address(self, proxy_address: ChecksumAddress) -> ChecksumAddress:
        return get_implementation_address(proxy_address)

    def abi(self, contract: StakeContract) -> ABI:
        """Returns the JSON interface of a contract."""
        contract_abi = list()
        for entry in contract.container.contract_type.abi:
            contract_abi.append(entry.model_dump(mode="json", by_alias=True, exclude_none=True))
        return contract_abi

    def finalize(self, deployments: List[ContractInstance]) -> None:
        """Optionally publishes the deployments to block explorers."""
        if self.verify:
            verify_contracts(contracts=deployments)

    def _print_deployment_info(self):
        print(
            f"Account: {self.get_account().address}",
            f"Config: {self.path}",
            f"Registry: {self.registry_filepath}",
            f"Cache: {self.cache_dir}",
            f"Verify: {self.verify}",
            f"Ecosystem: {networks.provider.network.ecosystem.name}",
            f"Network: {networks.provider.network.name}",
            f"Chain ID: {networks.provider.network.chain_id}",
            f"Gas Price: {self._gas_price or networks.provider.gas_price}",
            sep="\n",
        )
