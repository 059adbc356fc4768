"""Inline HTML pages shared by the test modules."""

LISTING_PAGE = """
<html><head><title>File DB</title>
<meta name="csrf-token" content="listing-meta-token">
</head><body>
<fieldset>
  <legend>Routesets Definition:</legend>
  <table>
    <tr><th>Name</th><th></th><th></th><th></th></tr>
    <tr>
      <td>routes_def.csv</td>
      <td><a href="/file_dbs/1/routesets_definitions/5/edit">Update</a></td>
      <td><a href="/file_dbs/1/routesets_definitions/5/export">Export</a></td>
      <td><a href="/file_dbs/1/routesets_definitions/5"
             onclick="if (confirm('Are you sure?')) { var f = document.createElement('form'); f.method = 'POST'; f.action = this.href; var m = document.createElement('input'); m.setAttribute('type', 'hidden'); m.setAttribute('name', '_method'); m.setAttribute('value', 'delete'); f.appendChild(m); var s = document.createElement('input'); s.setAttribute('type', 'hidden'); s.setAttribute('name', 'authenticity_token'); s.setAttribute('value', 'def-delete-token'); f.appendChild(s); f.submit(); };return false;">Delete</a></td>
    </tr>
  </table>
</fieldset>
<fieldset>
  <legend>Routesets Digitmap:</legend>
  <table>
    <tr>
      <td>routes_dm.csv</td>
      <td><a href="/file_dbs/1/routesets_digitmaps/7/edit">Update</a></td>
      <td><a href="/file_dbs/1/routesets_digitmaps/7/export">Export</a></td>
      <td><a href="/file_dbs/1/routesets_digitmaps/7"
             onclick="if (confirm('Are you sure?')) { var f = document.createElement('form'); f.method = 'POST'; f.action = this.href; var m = document.createElement('input'); m.setAttribute('type', 'hidden'); m.setAttribute('name', '_method'); m.setAttribute('value', 'delete'); f.appendChild(m); var s = document.createElement('input'); s.setAttribute('type', 'hidden'); s.setAttribute('name', 'authenticity_token'); s.setAttribute('value', 'dm7-delete-token'); f.appendChild(s); f.submit(); };return false;">Delete</a></td>
    </tr>
    <tr>
      <td>extra_dm.csv</td>
      <td><a href="/file_dbs/1/routesets_digitmaps/9/edit">Update</a></td>
      <td><a href="/file_dbs/1/routesets_digitmaps/9/export">Export</a></td>
      <td><a href="/file_dbs/1/routesets_digitmaps/9"
             onclick="if (confirm('Are you sure?')) { var f = document.createElement('form'); f.method = 'POST'; f.action = this.href; var m = document.createElement('input'); m.setAttribute('type', 'hidden'); m.setAttribute('name', '_method'); m.setAttribute('value', 'delete'); f.appendChild(m); var s = document.createElement('input'); s.setAttribute('type', 'hidden'); s.setAttribute('name', 'authenticity_token'); s.setAttribute('value', 'dm9-delete-token'); f.appendChild(s); f.submit(); };return false;">Delete</a></td>
    </tr>
  </table>
</fieldset>
</body></html>
"""

DM_EDIT_FORM = """
<html><body>
<form action="/file_dbs/1/routesets_digitmaps/7" method="post" enctype="multipart/form-data">
  <input name="_method" type="hidden" value="put">
  <input name="authenticity_token" type="hidden" value="edit-form-token">
  <input name="tbgw_routesets_digitmap[id]" type="hidden" value="70">
  <input name="tbgw_routesets_digitmap[tbgw_files_db_id]" type="hidden" value="1">
  <input name="tbgw_routesets_digitmap[file]" type="file">
  <textarea name="tbgw_routesets_digitmap[uploaded_data]">called,calling
1234,5678</textarea>
  <input name="commit" type="submit" value="Update">
</form>
</body></html>
"""

DF_NEW_FORM = """
<html><body>
<form action="/file_dbs/1/routesets_definitions" method="post" enctype="multipart/form-data">
  <div style="margin:0;padding:0"><input name="authenticity_token" type="hidden" value="new-form-token"></div>
  <input name="tbgw_routesets_definition[tbgw_files_db_id]" type="hidden" value="1">
  <input name="tbgw_routesets_definition[file]" type="file">
  <input name="commit" type="submit" value="Import">
</form>
</body></html>
"""

META_ONLY_PAGE = """
<html><head><meta name="csrf-param" content="authenticity_token">
<meta name="csrf-token" content="meta-token-123"></head>
<body><p>nothing else</p></body></html>
"""

INLINE_SCRIPT_PAGE = """
<html><head><script src="/javascripts/prototype.js"></script>
<script type="text/javascript">
  window._token = null;
  new Ajax.Request('/file_dbs/1/routesets_definitions', {
    parameters: { authenticity_token: 'script-token-xyz', commit: 'Import' }
  });
</script></head><body></body></html>
"""

LOGIN_PAGE = """
<html><head><title>Login</title></head>
<body><form id="login_form" action="/login/check" method="post">
<input name="user[name]"><input name="user[pass]" type="password">
</form></body></html>
"""

VALIDATION_ERROR_PAGE = """
<html><body>
<div class="errorExplanation" id="errorExplanation">
  <h2>1 error prohibited this file from being saved</h2>
  <ul><li>File has an invalid number of columns on line 3</li></ul>
</div>
</body></html>
"""

SUCCESS_PAGE = """
<html><body><div class="flash notice">File was successfully updated.</div></body></html>
"""


def dm_csv(rows: int = 10) -> bytes:
    lines = ["called,calling,route"]
    for i in range(rows):
        lines.append(f"55{i:04d},*,route_{i}")
    return ("\n".join(lines) + "\n").encode("utf-8")
