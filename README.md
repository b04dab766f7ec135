# blockforge

Core pieces for a small proof-of-work blockchain node. Each module can be used
on its own:

- `blockforge.merkle`: a merkle tree (`Tree`) over any values that provide
  `hash()` and `equals(other)`. It supports proofs, verification, rebuilding,
  and a pluggable hash strategy. SHA-256 is the default.
- `blockforge.signature`: secp256k1 signing of JSON-serialisable values,
  stamped with a chain-specific prefix. It also recovers the signer's address
  and converts between `(v, r, s)` values and 65-byte signatures.
- `blockforge.peer`: `Peer`, `PeerStatus` and a thread-safe `PeerSet`.
- `blockforge.selector`: a `Transaction` record and two selection strategies,
  `"tip"` and `"tip_advanced"`. Both respect per-account nonce order.
- `blockforge.mempool`: a thread-safe `Mempool` keyed by account and nonce.
  Replacing a transaction requires a tip at least 10% higher.
- `blockforge.events`: fan-out of string messages to named subscribers over
  bounded channels.
- `blockforge.web`: a small WSGI application with routing, middleware,
  per-request values (trace id, start time, status code) and JSON responses,
  built on werkzeug.

## Installation

```
pip install blockforge
```

To install the test dependencies as well, use the `test` extra:

```
pip install "blockforge[test]"
```

## Examples

### Merkle tree

```python
import hashlib
from blockforge.merkle import Tree

class Item:
    def __init__(self, text):
        self.text = text
    def hash(self):
        return hashlib.sha256(self.text.encode()).digest()
    def equals(self, other):
        return self.text == other.text
    def __str__(self):
        return self.text

tree = Tree([Item("Hello"), Item("Hi"), Item("Hey")])
print(tree.root_hex())
proof, order = tree.proof(Item("Hi"))   # order: 0 = proof hash first, 1 = second
tree.verify()                           # raises ValueError if the tree is inconsistent
tree.verify_data(Item("Hi"))
print([item.text for item in tree.values()])
```

An odd number of values is padded by duplicating the last leaf. `values()`
leaves the padding out.

### Signatures

```python
from blockforge.signature import (
    PrivateKey, sign, verify_signature, from_address, signature_string,
    to_vrs_from_hex_signature,
)

# hex_key: 64 hex digits of a private key, read from your own key store
key = PrivateKey.from_hex(hex_key)
v, r, s = sign({"Name": "Bill"}, key)
verify_signature({"Name": "Bill"}, v, r, s)
assert from_address({"Name": "Bill"}, v, r, s) == key.address()

text = signature_string(v, r, s)
assert to_vrs_from_hex_signature(text) == (v, r, s)
```

`verify_signature` checks only the form of the values: a recovery id of 0 or
1 after the chain id (29) is removed, and `r` and `s` in range. To find out
who signed a value, use `from_address`. `hash_value(value)` returns a
0x-prefixed SHA-256 hex digest of the value's compact JSON form.

### Peers

```python
from blockforge.peer import Peer, PeerSet

peers = PeerSet()
peers.add(Peer("host1"))        # True: newly added
peers.add(Peer("host1"))        # False: already known
peers.add(Peer("host2"))
others = peers.copy("host1")    # every known peer except host1
```

### Mempool and selection

```python
from blockforge.mempool import Mempool
from blockforge.selector import Transaction

pool = Mempool("tip")           # or "tip_advanced"
pool.upsert(Transaction(from_id="0xAAAA", to_id="0xBBBB", nonce=1, tip=10))
pool.upsert(Transaction(from_id="0xAAAA", to_id="0xBBBB", nonce=2, tip=50))
pool.upsert(Transaction(from_id="0xCCCC", to_id="0xBBBB", nonce=1, tip=30))

best = pool.pick_best(2)        # pick_best() or pick_best(0) returns all
pool.delete(best[0])
pool.truncate()
```

The selection functions are also available directly as
`selector.tip_select`, `selector.advanced_tip_select` and
`selector.retrieve(name)`. Strategy names are case-insensitive.

### Events

```python
from blockforge.events import Events

events = Events()
channel = events.acquire("viewer-1")
events.send("block mined")      # dropped for any channel already holding 100 messages
print(channel.get(timeout=1))   # "block mined"
events.release("viewer-1")      # closes the channel; iteration over it then ends
events.shutdown()               # closes every remaining channel
```

### Web

```python
import queue
from blockforge.web import App, param, respond, get_trace_id

shutdown = queue.Queue()

def logger(handler):
    def wrapped(ctx, request):
        response = handler(ctx, request)
        print(get_trace_id(ctx), request.path)
        return response
    return wrapped

def show_block(ctx, request):
    return respond(ctx, {"number": param(request, "num")}, 200)

app = App(shutdown, logger)
app.handle("GET", "v1", "/blocks/:num", show_block)
```

`App` is a WSGI callable. Route segments of the form `:name` and `*name`
become path parameters. If a handler raises, the app answers 500 and puts
`signal.SIGTERM` on the shutdown queue. `decode(request, model)` reads a
JSON body, building a dataclass and rejecting unknown fields when `model`
is a dataclass. `ShutdownError` and `is_shutdown` let code mark and detect
errors that call for a shutdown.

## Errors

Failures are raised as exceptions:

- `SignatureError` for bad keys or signatures.
- `ValueError` for an unknown selection strategy, a rejected mempool
  replacement, an empty merkle tree, or data not in the tree.
- `KeyError` when releasing an unknown event id.
- `LookupError` when request values are missing from a context.

## What this package does not do

There is no block storage or database, no account balances, no proof-of-work
mining and no synchronisation with other nodes. There is no command-line
program. The web layer is a WSGI application only; serve it with any WSGI
server, for example `werkzeug.serving.run_simple`.