# Proxy detection constants.
# Bump PROXY_PATTERN_CATALOG_VERSION whenever a slot, selector or template
# below changes, since detection results are not comparable across versions.
PROXY_PATTERN_CATALOG_VERSION = "1.1.0"

# 1. Storage slots

# EIP-1967: bytes32(uint256(keccak256('eip1967.proxy.implementation')) - 1)
SLOT_EIP1967_IMPL = "0x360894a13ba1a3210667c828492db98dca3e2076cc3735a920a3ca505d382bbc"

# EIP-1967: bytes32(uint256(keccak256('eip1967.proxy.beacon')) - 1)
SLOT_EIP1967_BEACON = "0xa3f0ad74e5423aebfd80d3ef4346578335a9a72aeaee59ff6cb3582b35133d50"

# keccak256("org.zeppelinos.proxy.implementation")
SLOT_ZEPPELINOS_IMPL = "0x7050c9e0f4ca769c69bd3a8ef740bc37934f8e2c036e5a723fd8ee048ed3f8c3"

# ERC-1822 (UUPS): keccak256("PROXIABLE")
SLOT_ERC1822_PROXIABLE = "0xc5f16f0fcc639fa48a6947836d9850f504798523bf8c9a3a87d5876cf622bcf7"

# EIP-2535: keccak256("diamond.standard.diamond.storage")
SLOT_DIAMOND_STANDARD_STORAGE = "0xc8fcad8db84d3cc18b4c41d551ea0ee66dd599cde068d998e57d5e09332c131c"

# keccak256("diamond.standard.diamond.storage") - 1, as used by zkSync Era
SLOT_DIAMOND_STORAGE = "0xc8fcad8db84d3cc18b4c41d551ea0ee66dd599cde068d998e57d5e09332c131b"

# Gnosis Safe keeps its master copy in slot 0
SLOT_ZERO = "0x" + "0" * 64

# Sequence wallet reads the slot keyed by the proxy's own address (ADDRESS SLOAD)
SLOT_SELF_ADDRESS = "address"

# 2. Function selectors
SIG_IMPLEMENTATION = "0x5c60da1b"  # implementation()
SIG_BEACON = "0x59659e90"  # beacon()
SIG_FACET_ADDRESS = "0xcdffacc6"  # facetAddress(bytes4)
SIG_FACET_ADDRESSES = "0x52ef6b2c"  # facetAddresses()
SIG_FACETS = "0x7a0ed627"  # facets()

# Gnosis Safe proxies PUSH32 the masterCopy() selector left-aligned in a word
SIG_GNOSIS_MASTER_COPY_WORD = "0xa619486e" + "0" * 56

# 3. Minimal proxy runtime templates
# EIP-1167: 363d3d373d3d3d363d73<20-byte address>5af43d82803e903d91602b57fd5bf3 (45 bytes)
EIP1167_PREFIX = "363d3d373d3d3d363d73"
EIP1167_SUFFIX = "5af43d82803e903d91602b57fd5bf3"

# ERC-7511 (PUSH0 variant): 365f5f375f5f365f73<20-byte address>5af43d5f5f3e5f3d91602a57fd5bf3 (44 bytes)
ERC7511_PREFIX = "365f5f375f5f365f73"
ERC7511_SUFFIX = "5af43d5f5f3e5f3d91602a57fd5bf3"

# 4. Opcode sequences
SEQ_SELF_ADDRESS_SLOAD = ("ADDRESS", "SLOAD")
