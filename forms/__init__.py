"""
Form field engine: detect fields in uploaded PDFs, build the master form,
write values into a live form and flatten it into a static snapshot.
"""
